"""Command-line interface for the quality gate.

Commands::

    quality-gate run [CONFIG]       run every check and exit with the verdict
    quality-gate validate [CONFIG]  check a configuration without running it
    quality-gate init               write a starter configuration
    quality-gate history            show recent runs

Exit codes: 0 gate passed, 1 gate failed, 2 configuration error,
3 report could not be written, 130 interrupted.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

import typer

from src.gate_runner.config import load_gate_config
from src.gate_runner.display import (
    print_config_summary,
    print_error_panel,
    print_history_table,
    print_message,
    print_report_summary,
)
from src.gate_runner.history import HistoryStore
from src.gate_runner.shutdown import GracefulShutdown
from src.gate_runner.sinks import ConsoleSink, FileSink
from src.gate_shared.constants import DEFAULT_CONFIG_FILE, HISTORY_FILE, STATE_DIR
from src.gate_shared.models import CheckDefinition, ExecutionMode, QualityReport, RunOptions
from src.gate_shared.utils import atomic_write_text
from src.quality_gate.executor import ProcessRegistry, SubprocessExecutor
from src.quality_gate.gate_engine import QualityGateEngine, validate_checks
from src.quality_gate.report import ReportFormat, render_report
from src.quality_gate.scan_aggregator import compute_verdict
from src.shared.config import GateSettings
from src.shared.constants import (
    EXIT_CONFIGURATION_ERROR,
    EXIT_INTERRUPTED,
    EXIT_OUTPUT_ERROR,
    SERVICE_NAME,
    VERSION,
)
from src.shared.errors import ConfigurationError
from src.shared.logging import setup_logging

logger = logging.getLogger(__name__)

app = typer.Typer(
    name=SERVICE_NAME,
    help="Zero-tolerance quality gate: lint, type-check, format, test and build must all pass.",
    no_args_is_help=True,
)

_DEFAULT_CONFIG_TEMPLATE = """\
# Quality gate configuration.
# Every check must exit 0 with zero errors for the gate to pass.
mode: parallel            # sequential | parallel
fail_fast: false          # sequential mode only: skip the rest after a failure
timeout_ms: 600000        # default per-check timeout
cwd: .                    # relative to this file

checks:
  - name: lint
    command: npx eslint . --format json
    severity: critical
    parser: eslint-json
    timeout_ms: 120000

  - name: typecheck
    command: npx tsc --noEmit --pretty false
    severity: critical
    parser: tsc
    timeout_ms: 180000

  - name: format
    command: npx prettier --check .
    severity: high
    parser: prettier-check
    timeout_ms: 60000

  - name: test
    command: npx jest --ci --json
    severity: critical
    parser: jest-json

  - name: build
    command: npm run build
    severity: high
    parser: exit-code
"""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"{SERVICE_NAME} {VERSION}")
        raise typer.Exit()


def _config_path(config: Optional[Path]) -> Path:
    return config if config is not None else Path(GateSettings().config_path)


async def _execute(
    checks: Sequence[CheckDefinition], options: RunOptions
) -> QualityReport | None:
    """Run the engine with signal handling installed.

    Returns ``None`` when the run was interrupted by SIGINT / SIGTERM.
    """
    registry = ProcessRegistry()
    engine = QualityGateEngine(executor=SubprocessExecutor(registry=registry))
    shutdown = GracefulShutdown(registry)
    shutdown.install(asyncio.current_task())
    try:
        return await engine.run_all(checks, options)
    except asyncio.CancelledError:
        if not shutdown.should_stop:
            raise
        logger.warning("Quality gate run interrupted -- no report produced")
        return None
    finally:
        shutdown.uninstall()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level (default: $LOG_LEVEL or info)."
    ),
) -> None:
    """Zero-tolerance quality gate."""
    settings = GateSettings()
    setup_logging(
        SERVICE_NAME,
        level=log_level or settings.log_level,
        json_format=settings.log_json,
    )


@app.command()
def run(
    config: Optional[Path] = typer.Argument(
        None, help="Gate config YAML (default: $GATE_CONFIG_PATH or quality-gate.yml)."
    ),
    mode: Optional[ExecutionMode] = typer.Option(
        None, "--mode", "-m", case_sensitive=False, help="Override the configured mode."
    ),
    fail_fast: Optional[bool] = typer.Option(
        None, "--fail-fast/--no-fail-fast", help="Override the configured fail-fast flag."
    ),
    timeout_ms: Optional[int] = typer.Option(
        None, "--timeout-ms", min=1, help="Default per-check timeout in milliseconds."
    ),
    fmt: ReportFormat = typer.Option(
        ReportFormat.TEXT, "--format", "-f", case_sensitive=False, help="Report format."
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the report to this file instead of stdout."
    ),
    history: Optional[Path] = typer.Option(
        None, "--history", help="Append a run record to this history file (.jsonl or .csv)."
    ),
    cwd: Optional[Path] = typer.Option(
        None, "--cwd", help="Working directory for checks without their own."
    ),
) -> None:
    """Run every configured check and exit with the gate verdict."""
    settings = GateSettings()
    try:
        gate = load_gate_config(_config_path(config)).with_overrides(
            mode=mode.value if mode is not None else None,
            fail_fast=fail_fast,
            timeout_ms=timeout_ms,
            cwd=str(cwd) if cwd is not None else None,
        )
        report = asyncio.run(_execute(gate.to_definitions(), gate.to_options()))
    except ConfigurationError as exc:
        print_error_panel(exc)
        raise typer.Exit(code=EXIT_CONFIGURATION_ERROR)

    if report is None:
        print_error_panel("Interrupted -- running checks were stopped")
        raise typer.Exit(code=EXIT_INTERRUPTED)

    history_path = history or (Path(settings.history_path) if settings.history_path else None)
    if history_path is not None:
        HistoryStore(history_path).append(report)

    rendered = render_report(report, fmt)
    if output is not None:
        try:
            FileSink(output).write(rendered, report)
        except OSError as exc:
            logger.error("Could not write quality gate report to %s: %s", output, exc)
            print_error_panel(f"Could not write report to {output}: {exc}")
            raise typer.Exit(code=EXIT_OUTPUT_ERROR)
        print_report_summary(report)
    else:
        ConsoleSink().write(rendered, report)

    raise typer.Exit(code=compute_verdict(report).exit_code)


@app.command()
def validate(
    config: Optional[Path] = typer.Argument(
        None, help="Gate config YAML (default: $GATE_CONFIG_PATH or quality-gate.yml)."
    ),
) -> None:
    """Load and validate a configuration without running any check."""
    try:
        gate = load_gate_config(_config_path(config))
        issues = validate_checks(gate.to_definitions(), gate.to_options())
        if issues:
            raise ConfigurationError("Invalid check configuration", issues=issues)
    except ConfigurationError as exc:
        print_error_panel(exc)
        raise typer.Exit(code=EXIT_CONFIGURATION_ERROR)

    print_config_summary(gate)
    print_message(f"Configuration OK: {len(gate.checks)} check(s)", style="bold green")


@app.command()
def init(
    output: Path = typer.Option(
        Path(DEFAULT_CONFIG_FILE), "--output", "-o", help="Where to write the config."
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Write a starter configuration for a web codebase."""
    if output.exists() and not force:
        print_error_panel(f"{output} already exists (use --force to overwrite)")
        raise typer.Exit(code=1)

    atomic_write_text(output, _DEFAULT_CONFIG_TEMPLATE)
    print_message(f"Wrote quality gate config to {output}", style="green")


@app.command("history")
def show_history(
    path: Optional[Path] = typer.Option(
        None, "--path", help="History file (default: $GATE_HISTORY_PATH or .quality-gate/history.jsonl)."
    ),
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Number of runs to show."),
) -> None:
    """Show the most recent recorded runs."""
    if path is None:
        settings = GateSettings()
        path = Path(settings.history_path) if settings.history_path else Path(STATE_DIR) / HISTORY_FILE
    print_history_table(HistoryStore(path).read(limit=limit))
