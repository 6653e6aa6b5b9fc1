"""boxmod - Flash and mod engine for MTD-based set-top boxes.

This package provides partition lookup, raw MTD flashing, and squashfs
overlay-edit transactions for building and applying firmware mods.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
