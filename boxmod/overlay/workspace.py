"""Temporary workspace allocation.

Repacking a root filesystem needs room for the whole new image, which can
exceed the small tmpfs most boxes mount at /tmp. Large workspaces therefore
go to the scratch directory when one is configured and present.
"""

import logging
import shutil
import tempfile
from pathlib import Path

from boxmod.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "boxmod_"


def allocate_workspace(
    settings: Settings,
    *,
    large: bool = False,
    prefix: str = DEFAULT_PREFIX,
) -> Path:
    """Create a new, uniquely named workspace directory.

    Args:
        settings: Engine settings (scratch and temp directories).
        large: Whether the workspace may hold a full filesystem image.
        prefix: Directory name prefix.

    Returns:
        Path to the new directory.
    """
    parent: Path | None = settings.tmp_dir

    if large:
        scratch = settings.scratch_dir
        if scratch is not None and scratch.is_dir():
            parent = scratch
        elif scratch is not None:
            logger.warning(
                "Scratch directory %s does not exist, using default temp storage",
                scratch,
            )
        else:
            logger.warning(
                "No scratch directory configured, using default temp storage "
                "for a large workspace"
            )

    if parent is not None:
        parent.mkdir(parents=True, exist_ok=True)

    path = Path(tempfile.mkdtemp(prefix=prefix, dir=parent))
    logger.debug("Allocated workspace %s", path)
    return path


def release_workspace(path: Path) -> None:
    """Remove a workspace directory and everything in it.

    Raises:
        OSError: Removal failed (e.g. a mount below it is still busy).
    """
    if path.exists():
        shutil.rmtree(path)
        logger.debug("Released workspace %s", path)


def remove_tree(path: Path, settings: Settings) -> bool:
    """Recursively delete a path, honoring dry-run mode.

    Args:
        path: File or directory to delete.
        settings: Engine settings.

    Returns:
        True if the path was deleted, False if skipped or absent.
    """
    if not path.exists() and not path.is_symlink():
        return False

    if settings.dry_run:
        logger.info("Dry-run mode: not deleting %s", path)
        return False

    logger.info("Deleting %s", path)
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
    return True


__all__ = ["DEFAULT_PREFIX", "allocate_workspace", "release_workspace", "remove_tree"]
