"""Tests for mods/ - imager context and runner."""

import textwrap
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from boxmod.config import Settings
from boxmod.errors import EngineError, TransactionFailedError
from boxmod.flash.service import FlashResult
from boxmod.mods.context import ImagerAbort, ImagerContext, read_options
from boxmod.mods.runner import load_imager, run_mod
from boxmod.overlay.transaction import TransactionResult


def _write_mod(mod_dir: Path, body: str, options: str | None = None) -> Path:
    mod_dir.mkdir(parents=True, exist_ok=True)
    (mod_dir / "imager.py").write_text(textwrap.dedent(body))
    if options is not None:
        (mod_dir / "options").write_text(options)
    return mod_dir


def _ok_flash(partition, image_path, *, settings=None):
    return FlashResult(success=True, partition=partition, image_path=str(image_path))


class TestReadOptions:
    """Tests for read_options function."""

    def test_one_per_line(self, tmp_path):
        """Options are read one per line, ignoring blanks and comments."""
        path = tmp_path / "options"
        path.write_text("keep_recovery\n\n# comment\n  enable_telnet  \n")

        assert read_options(path) == frozenset({"keep_recovery", "enable_telnet"})

    def test_missing_file(self, tmp_path):
        """No options file means no options."""
        assert read_options(tmp_path / "options") == frozenset()


class TestImagerContext:
    """Tests for ImagerContext."""

    def test_has_option(self, tmp_path):
        """Membership test against the options file."""
        _write_mod(tmp_path, "", options="enable_telnet\n")
        context = ImagerContext(tmp_path, Settings())

        assert context.has_option("enable_telnet") is True
        assert context.has_option("keep_recovery") is False

    def test_flash_resolves_relative_to_mod(self, tmp_path):
        """Image paths are relative to the mod directory."""
        context = ImagerContext(tmp_path, Settings())

        with patch("boxmod.mods.context.flash_partition", side_effect=_ok_flash) as mock_flash:
            context.flash("kernel", "boot.img")

        assert mock_flash.call_args[0] == ("kernel", tmp_path / "boot.img")

    def test_flash_failure_raises(self, tmp_path):
        """A failed flash stops the script."""
        context = ImagerContext(tmp_path, Settings())
        failed = FlashResult(
            success=False,
            partition="kernel",
            image_path="boot.img",
            error_message="Partition not found in MTD table: kernel",
            error_code="partition_not_found",
        )

        with patch("boxmod.mods.context.flash_partition", return_value=failed):
            with pytest.raises(EngineError) as exc_info:
                context.flash("kernel", "boot.img")

        assert exc_info.value.error_code == "partition_not_found"

    def test_fatal(self, tmp_path):
        """fatal() raises ImagerAbort."""
        context = ImagerContext(tmp_path, Settings())
        with pytest.raises(ImagerAbort, match="Invalid argument"):
            context.fatal("Invalid argument")

    def test_begin_edit_defaults_to_rootfs(self, tmp_path):
        """begin_edit() edits the rootfs partition by default."""
        context = ImagerContext(tmp_path, Settings())
        transaction = MagicMock(closed=False)

        with patch(
            "boxmod.mods.context.begin_from_partition", return_value=transaction
        ) as mock_begin:
            assert context.begin_edit() is transaction

        assert mock_begin.call_args[0] == ("rootfs",)

    def test_end_edit_failure_raises(self, tmp_path):
        """A failed end_edit raises TransactionFailedError."""
        context = ImagerContext(tmp_path, Settings())
        transaction = MagicMock(closed=False)
        failed = TransactionResult(
            success=False,
            destination="rootfs",
            error_message="Repack failed",
            error_code="repack_failed",
        )

        with (
            patch("boxmod.mods.context.begin_from_partition", return_value=transaction),
            patch("boxmod.mods.context.end", return_value=failed),
        ):
            context.begin_edit()
            with pytest.raises(TransactionFailedError):
                context.end_edit(transaction)

        assert context.abort_open_transactions() == 0

    def test_abort_open_transactions(self, tmp_path):
        """Edits left open are aborted."""
        context = ImagerContext(tmp_path, Settings())
        transaction = MagicMock(closed=False, destination="rootfs")

        with (
            patch("boxmod.mods.context.begin_from_image", return_value=transaction),
            patch("boxmod.mods.context.abort") as mock_abort,
        ):
            context.begin_image_edit("system.img")
            assert context.abort_open_transactions() == 1

        mock_abort.assert_called_once_with(transaction)

    def test_remove_tree_honors_dry_run(self, tmp_path):
        """Recursive deletes are skipped in dry-run."""
        target = tmp_path / "ota"
        target.mkdir()
        context = ImagerContext(tmp_path, Settings(dry_run=True))

        assert context.remove_tree(target) is False
        assert target.exists()

    def test_remove_tree_relative_to_mod(self, tmp_path, monkeypatch):
        """Relative paths are deleted inside the mod directory, not the cwd."""
        mod_dir = tmp_path / "mod"
        (mod_dir / "files" / "x").mkdir(parents=True)
        elsewhere = tmp_path / "elsewhere"
        (elsewhere / "files" / "x").mkdir(parents=True)
        monkeypatch.chdir(elsewhere)
        context = ImagerContext(mod_dir, Settings())

        assert context.remove_tree("files/x") is True
        assert not (mod_dir / "files" / "x").exists()
        assert (elsewhere / "files" / "x").exists()


class TestLoadImager:
    """Tests for load_imager function."""

    def test_loads_module(self, tmp_path):
        """imager.py is imported and its run function is available."""
        _write_mod(tmp_path, "def run(ctx):\n    return 'ran'\n")
        module = load_imager(tmp_path)
        assert module.run(None) == "ran"

    def test_missing_imager(self, tmp_path):
        """A directory without imager.py is rejected."""
        from boxmod.mods.context import ModError

        with pytest.raises(ModError) as exc_info:
            load_imager(tmp_path)
        assert exc_info.value.error_code == "imager_not_found"

    def test_syntax_error(self, tmp_path):
        """An unparsable script is a load error."""
        from boxmod.mods.context import ModError

        _write_mod(tmp_path, "def run(ctx:\n")
        with pytest.raises(ModError) as exc_info:
            load_imager(tmp_path)
        assert exc_info.value.error_code == "imager_load_error"


class TestRunMod:
    """Tests for run_mod function."""

    def test_simple_flash_mod(self, tmp_path):
        """A mod flashing kernel and rootfs runs to completion."""
        mod_dir = _write_mod(
            tmp_path / "simple-flash",
            """
            def run(ctx):
                ctx.flash("kernel", "boot.img")
                ctx.flash("rootfs", "system.img")
            """,
        )

        with patch("boxmod.mods.context.flash_partition", side_effect=_ok_flash) as mock_flash:
            result = run_mod(mod_dir, settings=Settings())

        assert result.success is True
        assert [c[0][0] for c in mock_flash.call_args_list] == ["kernel", "rootfs"]

    def test_args_passed(self, tmp_path):
        """Extra arguments reach the run function."""
        mod_dir = _write_mod(
            tmp_path / "mod",
            """
            def run(ctx, ota_zip):
                if ota_zip != "ota.zip":
                    ctx.fatal("Invalid argument")
            """,
        )

        assert run_mod(mod_dir, ["ota.zip"], settings=Settings()).success is True
        result = run_mod(mod_dir, ["other.zip"], settings=Settings())
        assert result.success is False
        assert result.code == "imager_aborted"

    def test_first_failure_stops(self, tmp_path):
        """A failed flash stops the mod before later steps."""
        mod_dir = _write_mod(
            tmp_path / "mod",
            """
            def run(ctx):
                ctx.flash("kernel", "boot.img")
                ctx.flash("rootfs", "system.img")
            """,
        )
        failed = FlashResult(
            success=False,
            partition="kernel",
            image_path="boot.img",
            error_message="Writing failed",
            error_code="flash_failed",
        )

        with patch("boxmod.mods.context.flash_partition", return_value=failed) as mock_flash:
            result = run_mod(mod_dir, settings=Settings())

        assert result.success is False
        assert result.code == "flash_failed"
        assert mock_flash.call_count == 1

    def test_missing_run_function(self, tmp_path):
        """A script without run() is invalid."""
        mod_dir = _write_mod(tmp_path / "mod", "VALUE = 1\n")
        result = run_mod(mod_dir, settings=Settings())
        assert result.success is False
        assert result.code == "imager_invalid"

    def test_unexpected_error(self, tmp_path):
        """A bug in the script is reported as a failure."""
        mod_dir = _write_mod(tmp_path / "mod", "def run(ctx):\n    1 / 0\n")
        result = run_mod(mod_dir, settings=Settings())
        assert result.success is False
        assert result.code == "imager_error"

    def test_open_edit_is_aborted(self, tmp_path):
        """An edit the script never ended is torn down and fails the mod."""
        mod_dir = _write_mod(
            tmp_path / "mod",
            """
            def run(ctx):
                ctx.begin_edit()
            """,
        )
        transaction = MagicMock(closed=False, destination="rootfs")

        with (
            patch("boxmod.mods.context.begin_from_partition", return_value=transaction),
            patch("boxmod.mods.context.abort") as mock_abort,
        ):
            result = run_mod(mod_dir, settings=Settings())

        mock_abort.assert_called_once_with(transaction)
        assert result.success is False
        assert result.code == "transaction_left_open"
        assert result.details["aborted_transactions"] == 1

    def test_log_path_reported(self, tmp_path):
        """The persistent log location is reported."""
        mod_dir = _write_mod(tmp_path / "mod", "def run(ctx):\n    ctx.log('hello')\n")
        settings = Settings(log_file=tmp_path / "update.log")

        result = run_mod(mod_dir, settings=settings)
        assert result.log_path == str(tmp_path / "update.log")
