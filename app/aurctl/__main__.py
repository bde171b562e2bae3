"""Allow ``python -m aurctl``; used when re-executing under sudo."""

from aurctl.cli.main import app

app(prog_name="aurctl")
