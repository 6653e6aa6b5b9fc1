"""Mod control script support.

This module handles:
- Reading a mod's options file
- The ImagerContext API exposed to imager.py scripts
- Loading and running imager.py with guaranteed transaction cleanup

Discovering and extracting mod archives is left to the boot driver.
"""

from boxmod.mods.context import (
    IMAGER_FILE,
    OPTIONS_FILE,
    ImagerAbort,
    ImagerContext,
    ModError,
    read_options,
)
from boxmod.mods.runner import load_imager, run_mod

__all__ = [
    "IMAGER_FILE",
    "OPTIONS_FILE",
    "ImagerAbort",
    "ImagerContext",
    "ModError",
    "load_imager",
    "read_options",
    "run_mod",
]
