"""Logging setup for boxmod.

Engine modules log through ``logging.getLogger(__name__)``; this module only
decides where the records go. The boot driver hands us a stream to log to
(its console or status pipe), and an optional persistent log file keeps a
record of failed updates across reboots.
"""

import logging
import sys
from typing import TextIO

from boxmod.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOGGER_NAME = "boxmod"

# Attribute set on handlers we install so reconfiguring replaces them
_HANDLER_MARK = "_boxmod_handler"


def configure_logging(settings: Settings, stream: TextIO | None = None) -> logging.Logger:
    """Route boxmod log records to a stream and the persistent log file.

    Calling this again replaces the handlers from the previous call.

    Args:
        settings: Engine settings (log level and optional log file).
        stream: Log sink supplied by the caller (defaults to stderr).

    Returns:
        The package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.log_level)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    stream_handler.setFormatter(formatter)
    setattr(stream_handler, _HANDLER_MARK, True)
    logger.addHandler(stream_handler)

    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_MARK, True)
        logger.addHandler(file_handler)

    return logger


__all__ = ["LOG_FORMAT", "LOGGER_NAME", "configure_logging"]
