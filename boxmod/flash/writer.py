"""Erase and program primitives for raw MTD devices.

NAND cannot be overwritten in place: a partition is erased in full and then
programmed sequentially from the image. Both steps go through mtd-utils,
which handle bad blocks and page alignment.

Neither step is retried. If programming fails after a successful erase the
partition is left erased and unbootable; retrying into a half-written NAND
region is less safe than reporting the failure and letting the caller stop.
"""

import logging
from pathlib import Path

from boxmod.config import Settings
from boxmod.errors import FlashError
from boxmod.process import CommandError, run_command

logger = logging.getLogger(__name__)


def erase_device(device: Path, settings: Settings) -> None:
    """Erase the full extent of an MTD character device.

    Args:
        device: Path to the device (e.g. /dev/mtd3).
        settings: Engine settings (tool names).

    Raises:
        FlashError: Erase failed.
    """
    logger.info("Erasing %s", device)
    try:
        # offset 0, block count 0 means the whole device
        run_command([settings.flash_erase_cmd, str(device), "0", "0"])
    except CommandError as e:
        raise FlashError(f"Erase of {device} failed: {e.message}", str(device)) from e


def program_device(image_path: Path, device: Path, settings: Settings) -> None:
    """Write an image to an erased MTD character device.

    Args:
        image_path: Image to write.
        device: Path to the device.
        settings: Engine settings (tool names).

    Raises:
        FlashError: Programming failed.
    """
    logger.info("Writing %s to %s", image_path, device)
    try:
        # -p pads the final page
        run_command([settings.nandwrite_cmd, "-p", str(device), str(image_path)])
    except CommandError as e:
        raise FlashError(
            f"Writing {image_path} to {device} failed: {e.message}", str(device)
        ) from e


__all__ = ["erase_device", "program_device"]
