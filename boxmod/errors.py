"""Error taxonomy for the flash and overlay engine.

Every error carries a human-readable message and a stable error code that
can be written to the status log and checked programmatically.
"""

from pathlib import Path

PARTITION_NOT_FOUND = "partition_not_found"
PARTITION_TABLE_ERROR = "partition_table_unreadable"
IMAGE_NOT_FOUND = "image_not_found"
MOUNT_FAILED = "mount_failed"
REPACK_FAILED = "repack_failed"
FLASH_FAILED = "flash_failed"
IMAGE_TOO_LARGE = "image_too_large"
UNSUPPORTED_SOURCE = "unsupported_source"
TRANSACTION_CLOSED = "transaction_closed"


class EngineError(Exception):
    """Base exception for engine errors."""

    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class PartitionNotFoundError(EngineError):
    """Partition name is absent from the live MTD table."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Partition not found in MTD table: {name}",
            error_code=PARTITION_NOT_FOUND,
        )
        self.name = name


class PartitionTableError(EngineError):
    """MTD partition table could not be read."""

    def __init__(self, table_path: Path, reason: str) -> None:
        super().__init__(
            f"Could not read MTD partition table {table_path}: {reason}",
            error_code=PARTITION_TABLE_ERROR,
        )
        self.table_path = table_path


class ImageNotFoundError(EngineError):
    """Image file does not exist."""

    def __init__(self, image_path: Path) -> None:
        super().__init__(
            f"Image file not found: {image_path}", error_code=IMAGE_NOT_FOUND
        )
        self.image_path = image_path


class MountError(EngineError):
    """Base or union mount could not be established."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code=MOUNT_FAILED)


class RepackError(EngineError):
    """Repacking the union view into a squashfs image failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code=REPACK_FAILED)


class ImageTooLargeError(EngineError):
    """Image does not fit in the target partition."""

    def __init__(self, image_path: Path, image_size: int, name: str, size: int) -> None:
        super().__init__(
            f"Image {image_path} ({image_size} bytes) is larger than "
            f"partition {name} ({size} bytes)",
            error_code=IMAGE_TOO_LARGE,
        )
        self.image_size = image_size
        self.partition_size = size


class FlashError(EngineError):
    """Erase or program step failed on the device."""

    def __init__(self, message: str, device: str) -> None:
        super().__init__(message, error_code=FLASH_FAILED)
        self.device = device


class UnsupportedSourceError(EngineError):
    """Overlay edit requested on a partition that cannot be block-mounted."""

    def __init__(self, name: str, supported: str) -> None:
        super().__init__(
            f"Partition {name!r} cannot be edited in place; "
            f"only {supported!r} supports squashfs block mounting",
            error_code=UNSUPPORTED_SOURCE,
        )
        self.name = name


class TransactionClosedError(EngineError):
    """Transaction was already ended or aborted."""

    def __init__(self, union: Path) -> None:
        super().__init__(
            f"Overlay transaction already closed: {union}",
            error_code=TRANSACTION_CLOSED,
        )
        self.union = union


class TransactionFailedError(EngineError):
    """Transaction ended but repack or flash failed."""


__all__ = [
    "FLASH_FAILED",
    "IMAGE_NOT_FOUND",
    "IMAGE_TOO_LARGE",
    "MOUNT_FAILED",
    "PARTITION_NOT_FOUND",
    "PARTITION_TABLE_ERROR",
    "REPACK_FAILED",
    "TRANSACTION_CLOSED",
    "UNSUPPORTED_SOURCE",
    "EngineError",
    "FlashError",
    "ImageNotFoundError",
    "ImageTooLargeError",
    "MountError",
    "PartitionNotFoundError",
    "PartitionTableError",
    "RepackError",
    "TransactionClosedError",
    "TransactionFailedError",
    "UnsupportedSourceError",
]
