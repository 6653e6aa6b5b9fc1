"""Thin CLI wrapper for boxmod.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import shutil
from pathlib import Path, PurePosixPath
from typing import Annotated

import typer
from rich.console import Console

from boxmod import __version__
from boxmod.config import Settings, get_settings, print_settings_json
from boxmod.logs import configure_logging

app = typer.Typer(
    name="boxmod",
    help="boxmod - flash partitions and apply mods on MTD set-top boxes",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"boxmod version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """boxmod - flash partitions and apply mods on MTD set-top boxes."""


def _load_settings(dry_run: bool = False) -> Settings:
    """Load settings, apply --dry-run and set up logging."""
    settings = get_settings()
    if dry_run:
        settings = settings.model_copy(update={"dry_run": True})
    configure_logging(settings)
    return settings


def _image_path(root: Path, path_in_image: str) -> Path:
    """Map an absolute path inside the image onto the union mount.

    Symlinks are not followed, since they point into the device's own
    filesystem rather than ours.
    """
    relative = PurePosixPath(path_in_image.lstrip("/"))
    if not relative.parts or ".." in relative.parts:
        raise typer.BadParameter(f"Invalid path in image: {path_in_image}")
    return root.joinpath(*relative.parts)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings))
    else:
        tmp_dir_display = (
            str(settings.tmp_dir) if settings.tmp_dir else "(system default)"
        )
        scratch_display = (
            str(settings.scratch_dir) if settings.scratch_dir else "(not set)"
        )
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Dry run:             {settings.dry_run}")
        console.print(f"  Log level:           {settings.log_level}")
        console.print(f"  Log file:            {settings.log_file or '(none)'}")
        console.print()
        console.print("[bold]Storage:[/bold]")
        console.print(f"  Temp directory:      {tmp_dir_display}")
        console.print(f"  Scratch directory:   {scratch_display}")
        console.print(f"  Overlay in RAM:      {settings.overlay_in_ram}")
        console.print()
        console.print("[bold]Device:[/bold]")
        console.print(f"  MTD table:           {settings.mtd_table}")
        console.print(f"  Device directory:    {settings.dev_dir}")
        console.print(f"  Rootfs partition:    {settings.rootfs_partition}")
        console.print()
        console.print("[bold]Tools:[/bold]")
        console.print(f"  Erase:               {settings.flash_erase_cmd}")
        console.print(f"  Write:               {settings.nandwrite_cmd}")
        console.print(f"  Repack:              {settings.mksquashfs_cmd}")
        console.print(
            f"  Squashfs options:    {settings.squashfs_compression}, "
            f"block size {settings.squashfs_block_size}"
        )


@app.command()
def partitions(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List partitions in the live MTD table."""
    from boxmod.errors import PartitionTableError
    from boxmod.flash.partitions import read_partition_table

    settings = get_settings()
    try:
        table = read_partition_table(settings.mtd_table)
    except PartitionTableError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output = [
            {
                "index": p.index,
                "name": p.name,
                "size": p.size,
                "erase_size": p.erase_size,
                "device": str(p.char_device(settings.dev_dir)),
            }
            for p in table
        ]
        console.print(json.dumps(output, indent=2))
        return

    if not table:
        console.print("[yellow]No partitions found[/yellow]")
        return

    console.print(f"[bold]Found {len(table)} partition(s):[/bold]")
    for p in table:
        console.print(
            f"  [green]{p.name}[/green]  mtd{p.index}  "
            f"size={p.size:#x}  erasesize={p.erase_size:#x}"
        )


@app.command()
def flash(
    partition: Annotated[str, typer.Argument(help="Partition name (e.g. kernel)")],
    image_path: Annotated[Path, typer.Argument(help="Path to raw image")],
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Show what would be done without writing"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Erase a partition and write an image to it."""
    from boxmod.flash.service import flash_partition

    settings = _load_settings(dry_run)
    result = flash_partition(partition, image_path, settings=settings)

    if json_output:
        output = {
            "success": result.success,
            "partition": result.partition,
            "image_path": result.image_path,
            "device_path": result.device_path,
            "bytes_written": result.bytes_written,
            "dry_run": result.dry_run,
            "erased": result.erased,
            "error_message": result.error_message,
            "error_code": result.error_code,
        }
        console.print(json.dumps(output, indent=2))
    elif result.success:
        if result.dry_run:
            console.print("[green]✓ Dry-run: flash skipped[/green]")
            console.print(f"  Would write {result.bytes_written} bytes")
        else:
            console.print("[green]✓ Flash succeeded[/green]")
            console.print(f"  Bytes written: {result.bytes_written}")
        console.print(f"  Partition: {result.partition} ({result.device_path})")
    else:
        console.print("[red]✗ Flash failed[/red]")
        if result.error_message:
            console.print(f"  Error: {result.error_message}")
        if result.erased:
            console.print("  [bold red]Partition was erased and is now empty[/bold red]")

    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def edit(
    destination: Annotated[
        str, typer.Argument(help="Partition to flash the edited filesystem to")
    ],
    image: Annotated[
        Path | None,
        typer.Option("--image", "-i", help="Edit this squashfs image instead of the partition"),
    ] = None,
    put: Annotated[
        list[str] | None,
        typer.Option("--put", "-p", help="Copy LOCAL=PATH_IN_IMAGE (repeatable)"),
    ] = None,
    delete: Annotated[
        list[str] | None,
        typer.Option("--delete", "-d", help="Delete a path in the image (repeatable)"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Repack but do not flash"),
    ] = False,
) -> None:
    """Edit a squashfs filesystem through an overlay and reflash it."""
    from boxmod.errors import EngineError
    from boxmod.overlay.transaction import (
        abort,
        begin_from_image,
        begin_from_partition,
        end,
    )

    settings = _load_settings(dry_run)

    copies: list[tuple[Path, str]] = []
    for item in put or []:
        local, sep, target = item.partition("=")
        if not sep or not local or not target:
            console.print(f"[red]Invalid --put value (expected LOCAL=PATH): {item}[/red]")
            raise typer.Exit(code=1)
        if not Path(local).exists():
            console.print(f"[red]Local path not found: {local}[/red]")
            raise typer.Exit(code=1)
        copies.append((Path(local), target))

    try:
        if image is not None:
            transaction = begin_from_image(image, destination, settings=settings)
        else:
            transaction = begin_from_partition(destination, settings=settings)
    except EngineError as e:
        console.print(f"[red]Could not open {destination}: {e.message}[/red]")
        raise typer.Exit(code=1) from None

    try:
        for target in delete or []:
            path = _image_path(transaction.union, target)
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()
            else:
                console.print(f"[yellow]Not in image: {target}[/yellow]")
        for local, target in copies:
            path = _image_path(transaction.union, target)
            path.parent.mkdir(parents=True, exist_ok=True)
            if local.is_dir():
                shutil.copytree(local, path, symlinks=True, dirs_exist_ok=True)
            else:
                shutil.copy2(local, path)
    except (OSError, typer.BadParameter) as e:
        abort(transaction)
        console.print(f"[red]Edit failed, nothing flashed: {e}[/red]")
        raise typer.Exit(code=1) from None
    except BaseException:
        abort(transaction)
        raise

    result = end(transaction, settings=settings)

    if result.success:
        if result.flash is not None and result.flash.dry_run:
            console.print("[green]✓ Repacked (dry-run: flash skipped)[/green]")
        else:
            console.print("[green]✓ Edit flashed[/green]")
        console.print(f"  Partition: {result.destination}")
        console.print(f"  Image size: {result.image_size}")
    else:
        console.print("[red]✗ Edit failed[/red]")
        if result.error_message:
            console.print(f"  Error: {result.error_message}")
    for problem in result.cleanup_errors:
        console.print(f"  [yellow]Cleanup: {problem}[/yellow]")

    if not result.success:
        raise typer.Exit(code=1)


mod_app = typer.Typer(help="Run extracted mods")
app.add_typer(mod_app, name="mod")


@mod_app.command("run")
def mod_run(
    mod_dir: Annotated[Path, typer.Argument(help="Extracted mod directory")],
    args: Annotated[
        list[str] | None,
        typer.Argument(help="Arguments passed to the mod's run function"),
    ] = None,
    update_source: Annotated[
        Path | None,
        typer.Option("--update-source", "-u", help="Update source root (checked for markers)"),
    ] = None,
    scratch_dir: Annotated[
        Path | None,
        typer.Option("--scratch-dir", help="High-capacity directory for edits"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Log destructive operations only"),
    ] = False,
) -> None:
    """Run a mod's imager.py with the engine available."""
    from boxmod.mods.runner import run_mod

    if update_source is not None:
        settings = Settings.for_update_source(update_source, scratch_dir=scratch_dir)
    else:
        settings = get_settings()
        if scratch_dir is not None:
            settings = settings.model_copy(update={"scratch_dir": scratch_dir})
    if dry_run:
        settings = settings.model_copy(update={"dry_run": True})
    configure_logging(settings)

    result = run_mod(mod_dir, args or [], settings=settings)

    if result.success:
        console.print(f"[green]✓ {result.message}[/green]")
        if settings.dry_run:
            console.print("  Dry-run: no partitions were written")
    else:
        console.print(f"[red]✗ Mod failed: {result.message}[/red]")
        if result.code:
            console.print(f"  Code: {result.code}")
        if result.log_path:
            console.print(f"  Log: {result.log_path}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
