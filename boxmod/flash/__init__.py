"""Raw MTD partition flashing.

This module handles:
- Partition name resolution against /proc/mtd
- Erase and program of whole partitions
- Dry-run mode

Partition names are resolved on every call and never guessed; a failed
flash is never retried.
"""

from boxmod.flash.partitions import (
    MtdPartition,
    parse_partition_table,
    read_partition_table,
    resolve_partition,
)
from boxmod.flash.service import FlashResult, flash_partition
from boxmod.flash.writer import erase_device, program_device

__all__ = [
    # Partitions
    "MtdPartition",
    "parse_partition_table",
    "read_partition_table",
    "resolve_partition",
    # Writer
    "erase_device",
    "program_device",
    # Service
    "FlashResult",
    "flash_partition",
]
