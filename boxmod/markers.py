"""Marker files recognized in an update source.

The boot driver mounts an update source (USB stick, SD card) and the files
found at its root decide how the update runs. Only ``dry_run`` affects the
engine itself; the others are reported for the driver.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DRY_RUN_MARKER = "dry_run"
INIT_PARTITIONS_MARKER = "init_partitions"
NO_REBOOT_MARKER = "no_reboot"


@dataclass(frozen=True)
class UpdateSourceMarkers:
    """Markers present in an update source.

    Attributes:
        dry_run: Log destructive operations without performing them.
        init_partitions: Reinitialize partition layout before updating.
        no_reboot: Do not reboot after the update completes.
    """

    dry_run: bool = False
    init_partitions: bool = False
    no_reboot: bool = False


def read_markers(update_source: Path) -> UpdateSourceMarkers:
    """Read marker files from the root of an update source.

    A missing update source yields no markers.

    Args:
        update_source: Root directory of the update source.

    Returns:
        UpdateSourceMarkers for that directory.
    """
    markers = UpdateSourceMarkers(
        dry_run=(update_source / DRY_RUN_MARKER).exists(),
        init_partitions=(update_source / INIT_PARTITIONS_MARKER).exists(),
        no_reboot=(update_source / NO_REBOOT_MARKER).exists(),
    )
    logger.debug("Markers in %s: %s", update_source, markers)
    return markers


__all__ = [
    "DRY_RUN_MARKER",
    "INIT_PARTITIONS_MARKER",
    "NO_REBOOT_MARKER",
    "UpdateSourceMarkers",
    "read_markers",
]
