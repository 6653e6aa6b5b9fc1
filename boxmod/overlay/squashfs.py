"""Repack a directory tree into a squashfs image."""

import logging
from pathlib import Path

from boxmod.config import Settings
from boxmod.errors import RepackError
from boxmod.process import CommandError, run_command

logger = logging.getLogger(__name__)


def compose_mksquashfs_command(
    source_dir: Path, image_path: Path, settings: Settings
) -> list[str]:
    """Compose the mksquashfs command for a repack.

    Args:
        source_dir: Directory to pack.
        image_path: Output image path.
        settings: Engine settings (tool, compressor, block size).

    Returns:
        Command as list of strings suitable for subprocess.
    """
    return [
        settings.mksquashfs_cmd,
        str(source_dir),
        str(image_path),
        "-noappend",
        "-comp",
        settings.squashfs_compression,
        "-b",
        str(settings.squashfs_block_size),
        "-no-progress",
    ]


def repack_directory(source_dir: Path, image_path: Path, settings: Settings) -> int:
    """Pack ``source_dir`` into a new squashfs image.

    Any existing file at ``image_path`` is replaced.

    Args:
        source_dir: Directory to pack.
        image_path: Output image path.
        settings: Engine settings.

    Returns:
        Size of the new image in bytes.

    Raises:
        RepackError: mksquashfs failed or produced no image.
    """
    logger.info("Repacking %s into %s", source_dir, image_path)

    try:
        run_command(compose_mksquashfs_command(source_dir, image_path, settings))
    except CommandError as e:
        if image_path.exists():
            image_path.unlink()
        detail = f": {e.output}" if e.output else ""
        raise RepackError(f"Repack of {source_dir} failed: {e.message}{detail}") from e

    if not image_path.is_file():
        raise RepackError(f"Repack of {source_dir} produced no image at {image_path}")

    size = image_path.stat().st_size
    logger.info("Repacked image is %d bytes", size)
    return size


__all__ = ["compose_mksquashfs_command", "repack_directory"]
