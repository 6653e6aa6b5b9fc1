"""Tests for logs.py - logging setup."""

import io
import logging
from pathlib import Path

import pytest

from boxmod.config import Settings
from boxmod.logs import LOGGER_NAME, configure_logging


@pytest.fixture(autouse=True)
def _reset_logger():
    """Remove handlers installed by a test."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_logs_to_caller_stream(self) -> None:
        """Records from engine modules reach the supplied stream."""
        stream = io.StringIO()
        configure_logging(Settings(), stream)

        logging.getLogger("boxmod.flash.service").info("Flashing kernel")

        assert "Flashing kernel" in stream.getvalue()

    def test_level_applied(self) -> None:
        """Records below the configured level are dropped."""
        stream = io.StringIO()
        configure_logging(Settings(log_level="WARNING"), stream)

        logging.getLogger("boxmod.overlay").info("quiet")
        logging.getLogger("boxmod.overlay").warning("loud")

        assert "quiet" not in stream.getvalue()
        assert "loud" in stream.getvalue()

    def test_persistent_log_file(self, tmp_path: Path) -> None:
        """Failures are appended to the persistent log file."""
        log_file = tmp_path / "logs" / "update.log"
        log_file.parent.mkdir()
        log_file.write_text("previous run\n")

        configure_logging(Settings(log_file=log_file), io.StringIO())
        logging.getLogger("boxmod.flash.service").error("Flash of kernel failed")
        for handler in logging.getLogger(LOGGER_NAME).handlers:
            handler.flush()

        content = log_file.read_text()
        assert content.startswith("previous run\n")
        assert "Flash of kernel failed" in content

    def test_reconfigure_replaces_handlers(self) -> None:
        """Calling twice does not duplicate output."""
        first = io.StringIO()
        second = io.StringIO()
        configure_logging(Settings(), first)
        configure_logging(Settings(), second)

        logging.getLogger("boxmod").info("once")

        assert first.getvalue() == ""
        assert second.getvalue().count("once") == 1
