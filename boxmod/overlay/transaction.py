"""Overlay edit transactions on squashfs root filesystems.

A transaction makes a read-only squashfs editable:

1. ``begin_from_partition`` / ``begin_from_image`` mount the squashfs
   read-only at ``base``, a tmpfs write layer at ``overlay`` and an
   overlayfs of the two at ``union``, and return an OverlayTransaction.
2. The caller edits files below ``transaction.union`` only.
3. ``end`` packs ``union`` into a new squashfs, flashes it to the recorded
   destination partition, and tears everything down.

Teardown always runs, in the reverse of mount order (union, write layer,
base) followed by removal of the work root, whether repacking or flashing
succeeded or not. Only one transaction should be open at a time.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from boxmod.config import Settings, get_settings
from boxmod.errors import (
    ImageNotFoundError,
    MountError,
    RepackError,
    TransactionClosedError,
    TransactionFailedError,
    UnsupportedSourceError,
)
from boxmod.flash.partitions import resolve_partition
from boxmod.flash.service import FlashResult, flash_partition
from boxmod.overlay.mounts import mount_squashfs, mount_tmpfs, mount_union, unmount
from boxmod.overlay.squashfs import repack_directory
from boxmod.overlay.workspace import allocate_workspace, release_workspace
from boxmod.types import SourceKind

logger = logging.getLogger(__name__)

WORK_ROOT_PREFIX = "boxmod_edit_"
REPACKED_IMAGE_NAME = "repacked.sqfs"


@dataclass(eq=False)
class OverlayTransaction:
    """Handle for an open overlay edit.

    Only ``begin_from_partition`` and ``begin_from_image`` create usable
    transactions; ``end`` or ``abort`` closes one exactly once.

    Attributes:
        work_root: Directory holding all mount points and the repacked image.
        destination: Partition the repacked image will be flashed to.
        source_kind: Whether the base is a partition or an image file.
        source: Block device or image file mounted as the base.
        closed: Whether end() or abort() has been called.
    """

    work_root: Path
    destination: str
    source_kind: SourceKind
    source: Path
    closed: bool = False
    mounted: list[Path] = field(default_factory=list)

    @property
    def base(self) -> Path:
        """Read-only mount of the source squashfs."""
        return self.work_root / "base"

    @property
    def overlay(self) -> Path:
        """Write layer holding the upper and work directories."""
        return self.work_root / "overlay"

    @property
    def upper(self) -> Path:
        return self.overlay / "upper"

    @property
    def workdir(self) -> Path:
        return self.overlay / "work"

    @property
    def union(self) -> Path:
        """Merged, editable view. The only place callers may write."""
        return self.work_root / "union"

    @property
    def image_path(self) -> Path:
        """Where end() writes the repacked image."""
        return self.work_root / REPACKED_IMAGE_NAME


@dataclass
class TransactionResult:
    """Result of ending an overlay transaction.

    Attributes:
        success: Whether repack and flash both succeeded.
        destination: Partition the image was flashed to.
        image_size: Size of the repacked image (0 if repack failed).
        flash: Flash result, None if no flash was attempted.
        error_message: Error message if the transaction failed.
        error_code: Error code if the transaction failed.
        cleanup_errors: Problems met during teardown.
    """

    success: bool
    destination: str
    image_size: int = 0
    flash: FlashResult | None = None
    error_message: str | None = None
    error_code: str | None = None
    cleanup_errors: list[str] = field(default_factory=list)


def _teardown(transaction: OverlayTransaction) -> list[str]:
    """Unmount everything in reverse order and remove the work root.

    A mount that refuses to go away is lazily detached. If even that fails
    the work root is left in place, since removing it would recurse into a
    live mount.

    Returns:
        Descriptions of any teardown failures.
    """
    errors: list[str] = []

    while transaction.mounted:
        mountpoint = transaction.mounted.pop()
        try:
            unmount(mountpoint)
        except MountError as e:
            logger.warning("%s; detaching lazily", e.message)
            try:
                unmount(mountpoint, lazy=True)
            except MountError as lazy_error:
                logger.error("Could not detach %s: %s", mountpoint, lazy_error.message)
                errors.append(lazy_error.message)

    if errors:
        logger.error("Leaving work root %s in place: mounts remain", transaction.work_root)
        errors.append(f"Work root not removed: {transaction.work_root}")
        return errors

    try:
        release_workspace(transaction.work_root)
    except OSError as e:
        logger.error("Could not remove work root %s: %s", transaction.work_root, e)
        errors.append(f"Could not remove work root {transaction.work_root}: {e}")

    return errors


def _open(
    source_kind: SourceKind,
    source: Path,
    destination: str,
    settings: Settings,
) -> OverlayTransaction:
    """Allocate a work root and build the base/overlay/union mounts."""
    try:
        work_root = allocate_workspace(settings, large=True, prefix=WORK_ROOT_PREFIX)
    except OSError as e:
        logger.error("Could not allocate work root for %s: %s", source, e)
        raise MountError(f"Could not allocate work root for {source}: {e}") from e

    transaction = OverlayTransaction(
        work_root=work_root,
        destination=destination,
        source_kind=source_kind,
        source=source,
    )

    try:
        for directory in (transaction.base, transaction.overlay, transaction.union):
            directory.mkdir()

        mount_squashfs(source, transaction.base, loop=source_kind == SourceKind.IMAGE)
        transaction.mounted.append(transaction.base)

        if settings.overlay_in_ram:
            mount_tmpfs(transaction.overlay)
            transaction.mounted.append(transaction.overlay)

        transaction.upper.mkdir()
        transaction.workdir.mkdir()

        mount_union(
            transaction.base,
            transaction.upper,
            transaction.workdir,
            transaction.union,
        )
        transaction.mounted.append(transaction.union)

    except (MountError, OSError) as e:
        message = e.message if isinstance(e, MountError) else str(e)
        logger.error("Could not open overlay on %s: %s", source, message)
        transaction.closed = True
        _teardown(transaction)
        if isinstance(e, MountError):
            raise
        raise MountError(f"Could not prepare overlay for {source}: {e}") from e

    logger.info(
        "Opened overlay edit of %s at %s (destination: %s)",
        source,
        transaction.union,
        destination,
    )
    return transaction


def begin_from_partition(
    partition_name: str,
    *,
    settings: Settings | None = None,
) -> OverlayTransaction:
    """Open an overlay edit of a live squashfs partition.

    Only the root filesystem partition can be mounted through its mtdblock
    device; the repacked image is flashed back to the same partition.

    Args:
        partition_name: Partition to edit.
        settings: Engine settings (defaults to environment settings).

    Returns:
        Open transaction.

    Raises:
        UnsupportedSourceError: Partition is not the root filesystem.
        PartitionNotFoundError: Partition absent from the MTD table.
        MountError: Mounts could not be established.
    """
    if settings is None:
        settings = get_settings()

    if partition_name != settings.rootfs_partition:
        logger.error("Refusing overlay edit of partition %s", partition_name)
        raise UnsupportedSourceError(partition_name, settings.rootfs_partition)

    partition = resolve_partition(partition_name, settings)
    return _open(
        SourceKind.PARTITION,
        partition.block_device(settings.dev_dir),
        partition_name,
        settings,
    )


def begin_from_image(
    image_path: str | Path,
    destination: str,
    *,
    settings: Settings | None = None,
) -> OverlayTransaction:
    """Open an overlay edit of a local squashfs image.

    Args:
        image_path: Squashfs image to edit.
        destination: Partition to flash the repacked image to.
        settings: Engine settings (defaults to environment settings).

    Returns:
        Open transaction.

    Raises:
        ImageNotFoundError: Image does not exist.
        MountError: Mounts could not be established.
    """
    if settings is None:
        settings = get_settings()

    image_path = Path(image_path)
    if not image_path.is_file():
        raise ImageNotFoundError(image_path)

    return _open(SourceKind.IMAGE, image_path.resolve(), destination, settings)


def end(
    transaction: OverlayTransaction,
    *,
    settings: Settings | None = None,
) -> TransactionResult:
    """Repack, flash and tear down an overlay transaction.

    Nothing is flashed if repacking fails. Teardown runs on every path.

    Args:
        transaction: Transaction returned by a begin function.
        settings: Engine settings (defaults to environment settings).

    Returns:
        TransactionResult with the repack/flash outcome.

    Raises:
        TransactionClosedError: Transaction was already ended or aborted.
    """
    if settings is None:
        settings = get_settings()

    if transaction.closed:
        raise TransactionClosedError(transaction.union)
    transaction.closed = True

    result = TransactionResult(success=False, destination=transaction.destination)

    try:
        try:
            result.image_size = repack_directory(
                transaction.union, transaction.image_path, settings
            )
        except RepackError as e:
            logger.error("Not flashing %s: %s", transaction.destination, e.message)
            result.error_message = e.message
            result.error_code = e.error_code
        else:
            result.flash = flash_partition(
                transaction.destination, transaction.image_path, settings=settings
            )
            result.success = result.flash.success
            result.error_message = result.flash.error_message
            result.error_code = result.flash.error_code
    finally:
        result.cleanup_errors = _teardown(transaction)

    if result.success:
        logger.info("Overlay edit of %s complete", transaction.destination)
    else:
        logger.error(
            "Overlay edit of %s failed: %s",
            transaction.destination,
            result.error_message,
        )
    return result


def abort(transaction: OverlayTransaction) -> list[str]:
    """Tear down a transaction without repacking or flashing.

    Args:
        transaction: Transaction returned by a begin function.

    Returns:
        Descriptions of any teardown failures.

    Raises:
        TransactionClosedError: Transaction was already ended or aborted.
    """
    if transaction.closed:
        raise TransactionClosedError(transaction.union)
    transaction.closed = True

    logger.warning("Aborting overlay edit of %s", transaction.destination)
    return _teardown(transaction)


@contextmanager
def overlay_edit(
    destination: str,
    *,
    image_path: str | Path | None = None,
    settings: Settings | None = None,
) -> Iterator[OverlayTransaction]:
    """Open an overlay edit for the duration of a ``with`` block.

    Edits from ``image_path`` when given, otherwise from the destination
    partition itself. A normal exit ends the transaction; an exception aborts
    it and propagates.

    Raises:
        TransactionFailedError: Repack or flash failed at the end of the block.
    """
    if settings is None:
        settings = get_settings()

    if image_path is not None:
        transaction = begin_from_image(image_path, destination, settings=settings)
    else:
        transaction = begin_from_partition(destination, settings=settings)

    try:
        yield transaction
    except BaseException:
        abort(transaction)
        raise

    result = end(transaction, settings=settings)
    if not result.success:
        raise TransactionFailedError(
            result.error_message or f"Overlay edit of {destination} failed",
            result.error_code or "transaction_failed",
        )


__all__ = [
    "REPACKED_IMAGE_NAME",
    "WORK_ROOT_PREFIX",
    "OverlayTransaction",
    "TransactionResult",
    "abort",
    "begin_from_image",
    "begin_from_partition",
    "end",
    "overlay_edit",
]
