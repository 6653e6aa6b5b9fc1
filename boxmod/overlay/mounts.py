"""Mount and unmount primitives for overlay transactions.

Thin wrappers over mount(8)/umount(8):
- Read-only squashfs from an mtdblock device or a loop-mounted image
- tmpfs for the overlay write layer
- overlayfs combining the write layer over the read-only base
"""

import logging
from pathlib import Path

from boxmod.errors import MountError
from boxmod.process import CommandError, run_command

logger = logging.getLogger(__name__)

# Characters overlayfs treats as separators in lowerdir/upperdir/workdir
OVERLAY_OPTION_SEPARATORS = ",:\\"


def mount_squashfs(source: Path, mountpoint: Path, *, loop: bool = False) -> None:
    """Mount a squashfs read-only.

    Args:
        source: Block device or image file.
        mountpoint: Existing directory to mount on.
        loop: Mount an image file through a loop device.

    Raises:
        MountError: Mount failed.
    """
    options = "loop,ro" if loop else "ro"
    logger.debug("Mounting squashfs %s at %s (%s)", source, mountpoint, options)
    try:
        run_command(
            ["mount", "-t", "squashfs", "-o", options, str(source), str(mountpoint)]
        )
    except CommandError as e:
        raise MountError(f"Could not mount {source} at {mountpoint}: {e.message}") from e


def mount_tmpfs(mountpoint: Path) -> None:
    """Mount a tmpfs.

    Raises:
        MountError: Mount failed.
    """
    logger.debug("Mounting tmpfs at %s", mountpoint)
    try:
        run_command(["mount", "-t", "tmpfs", "tmpfs", str(mountpoint)])
    except CommandError as e:
        raise MountError(f"Could not mount tmpfs at {mountpoint}: {e.message}") from e


def mount_union(lower: Path, upper: Path, work: Path, mountpoint: Path) -> None:
    """Mount an overlayfs of ``upper`` (read-write) over ``lower`` (read-only).

    Args:
        lower: Read-only base directory.
        upper: Directory receiving all writes.
        work: overlayfs work directory (same filesystem as upper).
        mountpoint: Where the merged view appears.

    Raises:
        MountError: Mount failed, or a path contains an option separator.
    """
    for path in (lower, upper, work):
        if any(char in str(path) for char in OVERLAY_OPTION_SEPARATORS):
            raise MountError(
                f"Cannot mount overlay at {mountpoint}: {path} contains "
                f"an overlayfs option separator ({OVERLAY_OPTION_SEPARATORS!r})"
            )

    options = f"lowerdir={lower},upperdir={upper},workdir={work}"
    logger.debug("Mounting overlay at %s (%s)", mountpoint, options)
    try:
        run_command(["mount", "-t", "overlay", "overlay", "-o", options, str(mountpoint)])
    except CommandError as e:
        raise MountError(f"Could not mount overlay at {mountpoint}: {e.message}") from e


def unmount(mountpoint: Path, *, lazy: bool = False) -> None:
    """Unmount a filesystem.

    Args:
        mountpoint: Mount point to release.
        lazy: Detach now and clean up once no longer busy (umount -l).

    Raises:
        MountError: Unmount failed (typically because it is busy).
    """
    logger.debug("Unmounting %s (lazy=%s)", mountpoint, lazy)
    cmd = ["umount", "-l", str(mountpoint)] if lazy else ["umount", str(mountpoint)]
    try:
        run_command(cmd)
    except CommandError as e:
        raise MountError(f"Could not unmount {mountpoint}: {e.message}") from e


__all__ = [
    "OVERLAY_OPTION_SEPARATORS",
    "mount_squashfs",
    "mount_tmpfs",
    "mount_union",
    "unmount",
]
