"""API handed to a mod's control script.

A mod is a directory with an ``imager.py`` defining ``run(ctx, *args)`` and
optionally an ``options`` file listing flag names, one per line. The script
receives an ImagerContext and drives the engine through it:

    def run(ctx, ota_zip):
        ctx.flash("kernel", "boot.img")
        with ctx.edit("rootfs") as rootfs:
            (rootfs.union / "etc" / "motd").write_text("modded\\n")

Flash and transaction failures raise, so a script stops at the first
failure unless it catches the error itself.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import NoReturn

from boxmod.config import Settings
from boxmod.errors import EngineError, TransactionFailedError
from boxmod.flash.service import FlashResult, flash_partition
from boxmod.overlay.transaction import (
    OverlayTransaction,
    TransactionResult,
    abort,
    begin_from_image,
    begin_from_partition,
    end,
    overlay_edit,
)
from boxmod.overlay.workspace import allocate_workspace, remove_tree

logger = logging.getLogger(__name__)

IMAGER_FILE = "imager.py"
OPTIONS_FILE = "options"


class ModError(Exception):
    """Base exception for mod loading and execution errors."""

    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class ImagerAbort(ModError):
    """Raised by ImagerContext.fatal to stop a mod."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="imager_aborted")


def read_options(path: Path) -> frozenset[str]:
    """Read a mod options file.

    Blank lines and lines starting with '#' are ignored. A missing file
    means no options.

    Args:
        path: Path to the options file.

    Returns:
        Set of option names.
    """
    if not path.is_file():
        return frozenset()

    options: set[str] = set()
    for line in path.read_text().splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            options.add(stripped)
    return frozenset(options)


class ImagerContext:
    """Engine operations available to a mod's control script."""

    def __init__(
        self,
        mod_dir: Path,
        settings: Settings,
        options: frozenset[str] | None = None,
    ) -> None:
        self.mod_dir = mod_dir
        self.settings = settings
        self.options = (
            options if options is not None else read_options(mod_dir / OPTIONS_FILE)
        )
        self._logger = logging.getLogger(f"{__name__}.{mod_dir.name}")
        self._open_transactions: list[OverlayTransaction] = []

    def path(self, relative: str | Path) -> Path:
        """Resolve a path relative to the mod directory."""
        return self.mod_dir / relative

    def log(self, message: str, *args: object) -> None:
        """Write a progress line to the update log."""
        self._logger.info(message, *args)

    def fatal(self, message: str) -> NoReturn:
        """Log an error and stop the mod."""
        self._logger.error(message)
        raise ImagerAbort(message)

    def has_option(self, name: str) -> bool:
        """Check whether the mod's options file lists ``name``."""
        return name in self.options

    def flash(self, partition: str, image: str | Path) -> FlashResult:
        """Flash an image (relative to the mod directory) to a partition.

        Raises:
            EngineError: Flash failed.
        """
        result = flash_partition(partition, self.path(image), settings=self.settings)
        if not result.success:
            raise EngineError(
                result.error_message or f"Flash of {partition} failed",
                result.error_code or "flash_failed",
            )
        return result

    def begin_edit(self, partition: str | None = None) -> OverlayTransaction:
        """Open an overlay edit of a live partition (the rootfs by default)."""
        transaction = begin_from_partition(
            partition or self.settings.rootfs_partition, settings=self.settings
        )
        self._open_transactions.append(transaction)
        return transaction

    def begin_image_edit(
        self, image: str | Path, destination: str | None = None
    ) -> OverlayTransaction:
        """Open an overlay edit of an image, to be flashed to ``destination``."""
        transaction = begin_from_image(
            self.path(image),
            destination or self.settings.rootfs_partition,
            settings=self.settings,
        )
        self._open_transactions.append(transaction)
        return transaction

    def end_edit(self, transaction: OverlayTransaction) -> TransactionResult:
        """Repack and flash an open edit.

        Raises:
            TransactionFailedError: Repack or flash failed.
        """
        if transaction in self._open_transactions:
            self._open_transactions.remove(transaction)
        result = end(transaction, settings=self.settings)
        if not result.success:
            raise TransactionFailedError(
                result.error_message or f"Edit of {result.destination} failed",
                result.error_code or "transaction_failed",
            )
        return result

    @contextmanager
    def edit(
        self, destination: str | None = None, image: str | Path | None = None
    ) -> Iterator[OverlayTransaction]:
        """Overlay edit scoped to a ``with`` block."""
        with overlay_edit(
            destination or self.settings.rootfs_partition,
            image_path=self.path(image) if image is not None else None,
            settings=self.settings,
        ) as transaction:
            yield transaction

    def remove_tree(self, path: str | Path) -> bool:
        """Recursively delete a mod-relative path, honoring dry-run mode."""
        return remove_tree(self.path(path), self.settings)

    def allocate_workspace(self, large: bool = False) -> Path:
        """Allocate a temporary directory for the mod's own use."""
        return allocate_workspace(self.settings, large=large, prefix="boxmod_mod_")

    def abort_open_transactions(self) -> int:
        """Tear down edits the script began but never ended.

        Returns:
            Number of transactions aborted.
        """
        count = 0
        while self._open_transactions:
            transaction = self._open_transactions.pop()
            if transaction.closed:
                continue
            logger.warning(
                "Mod left edit of %s open, aborting it", transaction.destination
            )
            abort(transaction)
            count += 1
        return count


__all__ = [
    "IMAGER_FILE",
    "OPTIONS_FILE",
    "ImagerAbort",
    "ImagerContext",
    "ModError",
    "read_options",
]
