"""MTD partition table lookup.

The kernel lists raw NAND partitions in /proc/mtd:

    dev:    size   erasesize  name
    mtd0: 00100000 00020000 "bootloader"
    mtd1: 00800000 00020000 "kernel"

Indices are only meaningful for the running kernel, so names are resolved
again for every operation and never cached. Lookups fail closed: an unknown
name is an error, never a guess.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from boxmod.config import Settings
from boxmod.errors import PartitionNotFoundError, PartitionTableError

logger = logging.getLogger(__name__)

_MTD_LINE = re.compile(
    r'^mtd(?P<index>\d+):\s+(?P<size>[0-9a-fA-F]+)\s+(?P<erase_size>[0-9a-fA-F]+)\s+"(?P<name>[^"]*)"\s*$'
)


@dataclass(frozen=True)
class MtdPartition:
    """A named raw flash region from the MTD table.

    Attributes:
        index: MTD device index (the N in /dev/mtdN).
        size: Partition size in bytes.
        erase_size: Erase block size in bytes.
        name: Symbolic partition name.
    """

    index: int
    size: int
    erase_size: int
    name: str

    def char_device(self, dev_dir: Path = Path("/dev")) -> Path:
        """Return the MTD character device used for erase/program."""
        return dev_dir / f"mtd{self.index}"

    def block_device(self, dev_dir: Path = Path("/dev")) -> Path:
        """Return the mtdblock device used for read-only mounting."""
        return dev_dir / f"mtdblock{self.index}"


def parse_partition_table(text: str) -> list[MtdPartition]:
    """Parse the contents of /proc/mtd.

    The header line and anything else that is not a partition record are
    skipped.

    Args:
        text: Table contents.

    Returns:
        Partitions in table order.
    """
    partitions: list[MtdPartition] = []
    for line in text.splitlines():
        match = _MTD_LINE.match(line.strip())
        if not match:
            continue
        partitions.append(
            MtdPartition(
                index=int(match.group("index")),
                size=int(match.group("size"), 16),
                erase_size=int(match.group("erase_size"), 16),
                name=match.group("name"),
            )
        )
    return partitions


def read_partition_table(table_path: Path) -> list[MtdPartition]:
    """Read and parse the live MTD partition table.

    Args:
        table_path: Path to the table (normally /proc/mtd).

    Returns:
        Partitions in table order.

    Raises:
        PartitionTableError: Table could not be read.
    """
    try:
        text = table_path.read_text()
    except OSError as e:
        logger.error("Could not read MTD table %s: %s", table_path, e)
        raise PartitionTableError(table_path, str(e)) from e
    return parse_partition_table(text)


def resolve_partition(name: str, settings: Settings) -> MtdPartition:
    """Find the partition whose name exactly matches ``name``.

    Args:
        name: Symbolic partition name (e.g. 'kernel', 'rootfs').
        settings: Engine settings (table location).

    Returns:
        The matching partition.

    Raises:
        PartitionNotFoundError: No partition has that name.
        PartitionTableError: Table could not be read.
    """
    for partition in read_partition_table(settings.mtd_table):
        if partition.name == name:
            logger.debug("Resolved partition %s to mtd%d", name, partition.index)
            return partition

    logger.error("Partition %s not found in %s", name, settings.mtd_table)
    raise PartitionNotFoundError(name)


__all__ = [
    "MtdPartition",
    "parse_partition_table",
    "read_partition_table",
    "resolve_partition",
]
