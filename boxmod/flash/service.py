"""Flash service layer for raw MTD partitions.

This module provides the partition flashing operation:
- Resolve the partition name against the live MTD table
- Refuse images that do not fit, before anything is erased
- Log the intended write
- Dry-run mode support
- Erase then program, without retry

Failures are returned as a FlashResult with a stable error code rather than
raised, so callers can log the outcome before deciding to stop.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from boxmod.config import Settings, get_settings
from boxmod.errors import (
    FlashError,
    ImageNotFoundError,
    ImageTooLargeError,
    PartitionNotFoundError,
    PartitionTableError,
)
from boxmod.flash.partitions import resolve_partition
from boxmod.flash.writer import erase_device, program_device

logger = logging.getLogger(__name__)


@dataclass
class FlashResult:
    """Result of a flash operation.

    Attributes:
        success: Whether the flash succeeded (or would have, in dry-run).
        partition: Requested partition name.
        image_path: Path to the image.
        device_path: Resolved MTD device, if resolution succeeded.
        bytes_written: Image size in bytes (0 on failure).
        dry_run: Whether the write was skipped because of dry-run mode.
        erased: Whether the device was erased (True with success=False means
            the partition was left erased).
        error_message: Error message if flash failed.
        error_code: Error code if flash failed.
    """

    success: bool
    partition: str
    image_path: str
    device_path: str | None = None
    bytes_written: int = 0
    dry_run: bool = False
    erased: bool = False
    error_message: str | None = None
    error_code: str | None = None


def flash_partition(
    partition_name: str,
    image_path: str | Path,
    *,
    settings: Settings | None = None,
) -> FlashResult:
    """Flash an image onto a named MTD partition.

    This is the main entry point for flashing operations. It:
    1. Resolves the partition name to an MTD device
    2. Validates the image exists
    3. Logs the intended write and refuses images that do not fit
    4. Returns early in dry-run mode
    5. Erases the device and programs the image

    Args:
        partition_name: Symbolic partition name (e.g. 'kernel').
        image_path: Path to the raw image.
        settings: Engine settings (defaults to environment settings).

    Returns:
        FlashResult with operation details.
    """
    if settings is None:
        settings = get_settings()

    image_path = Path(image_path)

    try:
        partition = resolve_partition(partition_name, settings)
    except (PartitionNotFoundError, PartitionTableError) as e:
        logger.error("Cannot flash %s: %s", partition_name, e.message)
        return FlashResult(
            success=False,
            partition=partition_name,
            image_path=str(image_path),
            error_message=e.message,
            error_code=e.error_code,
        )

    device = partition.char_device(settings.dev_dir)

    if not image_path.is_file():
        error = ImageNotFoundError(image_path)
        logger.error("Cannot flash %s: %s", partition_name, error.message)
        return FlashResult(
            success=False,
            partition=partition_name,
            image_path=str(image_path),
            device_path=str(device),
            error_message=error.message,
            error_code=error.error_code,
        )

    image_size = image_path.stat().st_size
    logger.info(
        "Flashing %s (%s) from %s (%d bytes)",
        partition_name,
        device,
        image_path,
        image_size,
    )

    if image_size > partition.size:
        error = ImageTooLargeError(image_path, image_size, partition_name, partition.size)
        logger.error("Cannot flash %s: %s", partition_name, error.message)
        return FlashResult(
            success=False,
            partition=partition_name,
            image_path=str(image_path),
            device_path=str(device),
            dry_run=settings.dry_run,
            error_message=error.message,
            error_code=error.error_code,
        )

    if settings.dry_run:
        logger.info("Dry-run mode: skipping erase and write of %s", device)
        return FlashResult(
            success=True,
            partition=partition_name,
            image_path=str(image_path),
            device_path=str(device),
            bytes_written=image_size,  # Would write this many bytes
            dry_run=True,
        )

    erased = False
    try:
        erase_device(device, settings)
        erased = True
        program_device(image_path, device, settings)
    except FlashError as e:
        if erased:
            logger.error(
                "Flash of %s failed after erase; partition is left erased: %s",
                partition_name,
                e.message,
            )
        else:
            logger.error("Flash of %s failed: %s", partition_name, e.message)
        return FlashResult(
            success=False,
            partition=partition_name,
            image_path=str(image_path),
            device_path=str(device),
            erased=erased,
            error_message=e.message,
            error_code=e.error_code,
        )

    logger.info("Flashed %d bytes to %s (%s)", image_size, partition_name, device)

    return FlashResult(
        success=True,
        partition=partition_name,
        image_path=str(image_path),
        device_path=str(device),
        bytes_written=image_size,
        erased=True,
    )


__all__ = ["FlashResult", "flash_partition"]
