"""Configuration settings for boxmod.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.

Settings are frozen: the dry-run flag and scratch directory are decided once
when the settings object is built and are then passed explicitly to every
engine operation.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from boxmod.markers import read_markers


class Settings(BaseSettings):
    """Engine settings.

    Settings are loaded from environment variables with the BOXMOD_ prefix.
    CLI flags can override these at runtime via ``model_copy(update=...)``.
    """

    model_config = SettingsConfigDict(
        env_prefix="BOXMOD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Operational modes
    dry_run: bool = Field(
        default=False,
        description="Log destructive operations instead of performing them",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: Path | None = Field(
        default=None,
        description="Persistent log file, appended to on every run",
    )

    # Temporary storage
    tmp_dir: Path | None = Field(
        default=None,
        description="Temporary directory for small workspaces (system default if not set)",
    )
    scratch_dir: Path | None = Field(
        default=None,
        description="High-capacity directory for transaction work roots",
    )

    # Device layout
    mtd_table: Path = Field(
        default=Path("/proc/mtd"),
        description="Kernel MTD partition table",
    )
    dev_dir: Path = Field(
        default=Path("/dev"),
        description="Directory holding mtdN and mtdblockN device nodes",
    )
    rootfs_partition: str = Field(
        default="rootfs",
        description="Only partition that can be mounted as a squashfs block device",
    )

    # External tools
    flash_erase_cmd: str = Field(default="flash_erase", description="mtd-utils eraser")
    nandwrite_cmd: str = Field(default="nandwrite", description="mtd-utils writer")
    mksquashfs_cmd: str = Field(default="mksquashfs", description="squashfs packer")

    # Repacking
    squashfs_compression: Literal["gzip", "lzo", "lz4", "xz", "zstd"] = Field(
        default="gzip",
        description="Compressor passed to mksquashfs",
    )
    squashfs_block_size: int = Field(
        default=131072,
        ge=4096,
        le=1048576,
        description="Block size passed to mksquashfs",
    )
    overlay_in_ram: bool = Field(
        default=True,
        description="Back the overlay write layer with tmpfs",
    )

    @classmethod
    def for_update_source(
        cls,
        update_source: Path,
        *,
        scratch_dir: Path | None = None,
        **overrides: object,
    ) -> "Settings":
        """Build settings for an update run from a mounted update source.

        Dry-run is enabled when the update source carries a ``dry_run``
        marker file; it cannot be switched off again by overrides.

        Args:
            update_source: Root of the mounted update source.
            scratch_dir: Optional high-capacity scratch directory.
            **overrides: Additional field overrides.

        Returns:
            Settings instance.
        """
        markers = read_markers(update_source)
        values: dict[str, object] = dict(overrides)
        if markers.dry_run:
            values["dry_run"] = True
        if scratch_dir is not None:
            values["scratch_dir"] = scratch_dir
        return cls(**values)  # type: ignore[arg-type]


def get_settings() -> Settings:
    """Get the engine settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
