"""Squashfs overlay edit transactions.

This module handles:
- Temporary workspace allocation (with a scratch area for large work)
- Read-only squashfs, tmpfs and overlayfs mounts
- Repacking the edited tree with mksquashfs
- Begin/end transactions that reflash the repacked image
"""

from boxmod.overlay.transaction import (
    OverlayTransaction,
    TransactionResult,
    abort,
    begin_from_image,
    begin_from_partition,
    end,
    overlay_edit,
)
from boxmod.overlay.workspace import allocate_workspace, release_workspace, remove_tree

__all__ = [
    # Workspace
    "allocate_workspace",
    "release_workspace",
    "remove_tree",
    # Transactions
    "OverlayTransaction",
    "TransactionResult",
    "abort",
    "begin_from_image",
    "begin_from_partition",
    "end",
    "overlay_edit",
]
