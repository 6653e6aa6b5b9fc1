"""Allow running as ``python -m boxmod``."""

from boxmod.cli import app

app(prog_name="boxmod")
