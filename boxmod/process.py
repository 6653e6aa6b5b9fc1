"""External command execution.

All device and filesystem work is done by standard tools (mtd-utils, mount,
squashfs-tools). Commands block until they finish; there is deliberately no
timeout because interrupting an erase or a mount leaves the device in an
unknown state.
"""

import logging
import shlex
import subprocess
from collections.abc import Sequence

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Raised when an external command fails to run or exits non-zero."""

    def __init__(
        self,
        message: str,
        command: Sequence[str],
        exit_code: int | None = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.command = list(command)
        self.exit_code = exit_code
        self.output = output


def run_command(cmd: Sequence[str]) -> str:
    """Run a command and return its combined output.

    Args:
        cmd: Command and arguments.

    Returns:
        Combined stdout/stderr text.

    Raises:
        CommandError: If the command cannot be started or exits non-zero.
    """
    cmd_str = shlex.join(cmd)
    logger.debug("Executing: %s", cmd_str)

    try:
        result = subprocess.run(
            list(cmd),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
        )
    except OSError as e:
        raise CommandError(f"Failed to execute {cmd_str}: {e}", cmd) from e

    if result.returncode != 0:
        output = result.stdout.strip()
        logger.error("Command failed (exit %d): %s", result.returncode, cmd_str)
        if output:
            logger.error("Output: %s", output)
        raise CommandError(
            f"{cmd[0]} failed with exit code {result.returncode}",
            cmd,
            exit_code=result.returncode,
            output=output,
        )

    return result.stdout


__all__ = ["CommandError", "run_command"]
