"""Load and run a mod's control script.

The mod archive has already been extracted by the caller; this module only
imports ``imager.py`` from the mod directory and calls its ``run`` function
with an ImagerContext. Whatever happens, edits the script left open are
torn down before returning.
"""

from __future__ import annotations

import hashlib
import importlib.util
import logging
from collections.abc import Sequence
from pathlib import Path
from types import ModuleType

from boxmod.config import Settings, get_settings
from boxmod.errors import EngineError
from boxmod.mods.context import IMAGER_FILE, ImagerContext, ModError
from boxmod.types import OperationResult

logger = logging.getLogger(__name__)


def load_imager(mod_dir: Path) -> ModuleType:
    """Import a mod's ``imager.py`` under a private module name.

    Args:
        mod_dir: Mod directory.

    Returns:
        The imported module.

    Raises:
        ModError: Script missing or not importable.
    """
    script = mod_dir / IMAGER_FILE
    if not script.is_file():
        raise ModError(f"No {IMAGER_FILE} in {mod_dir}", error_code="imager_not_found")

    digest = hashlib.sha256(str(script.resolve()).encode()).hexdigest()[:12]
    spec = importlib.util.spec_from_file_location(f"boxmod_imager_{digest}", script)
    if spec is None or spec.loader is None:
        raise ModError(f"Cannot load {script}", error_code="imager_load_error")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except (OSError, SyntaxError, ImportError) as e:
        raise ModError(f"Cannot load {script}: {e}", error_code="imager_load_error") from e
    return module


def run_mod(
    mod_dir: str | Path,
    args: Sequence[str] = (),
    *,
    settings: Settings | None = None,
) -> OperationResult:
    """Run an extracted mod.

    Args:
        mod_dir: Directory containing imager.py and optional options file.
        args: Extra arguments passed to the script's run function.
        settings: Engine settings (defaults to environment settings).

    Returns:
        OperationResult describing the outcome.
    """
    if settings is None:
        settings = get_settings()

    mod_dir = Path(mod_dir)
    logger.info("Running mod %s (dry_run=%s)", mod_dir, settings.dry_run)

    try:
        module = load_imager(mod_dir)
    except ModError as e:
        logger.error("%s", e.message)
        return OperationResult(success=False, message=e.message, code=e.error_code)

    entry = getattr(module, "run", None)
    if not callable(entry):
        message = f"{mod_dir / IMAGER_FILE} does not define run(ctx, *args)"
        logger.error("%s", message)
        return OperationResult(success=False, message=message, code="imager_invalid")

    context = ImagerContext(mod_dir, settings)
    result: OperationResult
    try:
        entry(context, *args)
        result = OperationResult(success=True, message=f"Mod {mod_dir.name} complete")
    except (ModError, EngineError) as e:
        logger.error("Mod %s failed: %s", mod_dir.name, e.message)
        result = OperationResult(success=False, message=e.message, code=e.error_code)
    except Exception as e:
        logger.exception("Mod %s raised an unexpected error", mod_dir.name)
        result = OperationResult(success=False, message=str(e), code="imager_error")
    finally:
        aborted = context.abort_open_transactions()

    if aborted:
        result.details["aborted_transactions"] = aborted
        if result.success:
            result.success = False
            result.message = f"Mod {mod_dir.name} left {aborted} edit(s) open"
            result.code = "transaction_left_open"

    if settings.log_file is not None:
        result.log_path = str(settings.log_file)
    if result.success:
        logger.info("%s", result.message)
    return result


__all__ = ["load_imager", "run_mod"]
