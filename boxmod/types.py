"""Shared type definitions for boxmod.

This module contains enums and dataclasses shared across subpackages to
avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum


class SourceKind(str, Enum):
    """Where an overlay transaction's read-only base comes from."""

    PARTITION = "partition"
    IMAGE = "image"


@dataclass
class OperationResult:
    """Result of a top-level operation (mod run, CLI edit, etc.)."""

    success: bool
    message: str
    code: str | None = None
    log_path: str | None = None
    details: dict[str, object] = field(default_factory=dict)


__all__ = ["OperationResult", "SourceKind"]
