"""Allow ``python -m src.gate_runner``."""

from src.gate_runner.cli import app

app()
