"""Rich-based terminal display for gate runs.

Provides the check summary table with verdict panel, configuration and
history tables, and error panels.  Uses a module-level
:class:`~rich.console.Console` singleton for consistent output.
"""

from __future__ import annotations

from typing import Any

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from src.gate_shared.models import CheckResult, FailureKind, QualityReport

# ---------------------------------------------------------------------------
# Module-level Console singleton
# ---------------------------------------------------------------------------

_console = Console()

_SEVERITY_STYLES: dict[str, str] = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "dim",
}


def _status_markup(result: CheckResult) -> str:
    if result.skipped:
        return "[dim]SKIPPED[/dim]"
    if result.failure_reason == FailureKind.TIMEOUT:
        return "[magenta]TIMEOUT[/magenta]"
    if result.failure_reason == FailureKind.EXECUTION_ERROR:
        return "[magenta]ERROR[/magenta]"
    if result.passed:
        return "[green]PASSED[/green]"
    return "[red]FAILED[/red]"


def _note(result: CheckResult) -> str:
    if result.skipped or result.could_not_run:
        return result.detail
    if result.parse_error is not None:
        return f"unparsed output: {result.parse_error}"
    return ""


# ---------------------------------------------------------------------------
# Display functions
# ---------------------------------------------------------------------------


def print_report_summary(report: QualityReport) -> None:
    """Print a Rich panel summarising a gate run.

    Parameters
    ----------
    report:
        The report produced by the engine.  Rows follow
        ``report.results`` order.
    """
    style = "green" if report.overall_passed else "red"

    content = Text()
    content.append(
        f"Verdict: {'PASSED' if report.overall_passed else 'FAILED'}\n", style=f"bold {style}"
    )
    content.append(f"Run: {report.run_id}  Mode: {report.mode.value}\n", style="dim")
    content.append(
        f"Checks: {report.passed_count} passed, {report.failed_count} failed, "
        f"{report.skipped_count} skipped\n"
    )
    content.append(f"Errors: {report.total_errors}  Warnings: {report.total_warnings}\n")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Check", style="cyan", min_width=12)
    table.add_column("Severity", justify="center")
    table.add_column("Status", justify="center", min_width=8)
    table.add_column("Errors", justify="right")
    table.add_column("Warnings", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Notes")

    for r in report.results:
        sev_style = _SEVERITY_STYLES.get(r.severity.value, "")
        table.add_row(
            r.name,
            f"[{sev_style}]{r.severity.value}[/{sev_style}]" if sev_style else r.severity.value,
            _status_markup(r),
            "—" if r.skipped else str(r.error_count),
            "—" if r.skipped else str(r.warning_count),
            "—" if r.skipped else f"{r.duration_ms}ms",
            Text(_note(r)),
        )

    _console.print(
        Panel(
            Group(content, table),
            title="[bold]Quality Gate Summary[/bold]",
            border_style=style,
            expand=False,
        )
    )


def print_config_summary(config: Any) -> None:
    """Print the checks a configuration would run.

    Parameters
    ----------
    config:
        A ``GateConfig`` instance.
    """
    table = Table(
        title=f"Quality Gate Configuration ({config.mode}"
        + (", fail-fast" if config.fail_fast else "")
        + ")",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("#", justify="right")
    table.add_column("Check", style="cyan")
    table.add_column("Severity", justify="center")
    table.add_column("Parser")
    table.add_column("Timeout", justify="right")
    table.add_column("Command")

    for index, check in enumerate(config.checks, start=1):
        timeout = check.timeout_ms if check.timeout_ms is not None else config.timeout_ms
        command = check.command if isinstance(check.command, str) else " ".join(check.command)
        table.add_row(
            str(index),
            check.name,
            check.severity,
            check.parser,
            f"{timeout}ms" if timeout else "—",
            Text(command),
        )

    _console.print(table)


def print_history_table(records: list[dict[str, Any]]) -> None:
    """Print recent history records, newest last."""
    if not records:
        _console.print("[dim]No recorded runs.[/dim]")
        return

    table = Table(title="Quality Gate History", show_header=True, header_style="bold magenta")
    table.add_column("Run", style="cyan")
    table.add_column("Timestamp")
    table.add_column("Mode")
    table.add_column("Verdict", justify="center")
    table.add_column("Errors", justify="right")
    table.add_column("Warnings", justify="right")
    table.add_column("Failed checks")

    for record in records:
        verdict = "[green]PASSED[/green]" if record["overall_passed"] else "[red]FAILED[/red]"
        table.add_row(
            str(record["run_id"]),
            str(record["timestamp"]),
            str(record["mode"]),
            verdict,
            str(record["total_errors"]),
            str(record["total_warnings"]),
            Text(", ".join(record["failed_checks"]) or "—"),
        )

    _console.print(table)


def print_message(message: str, style: str = "") -> None:
    """Print a single status line."""
    _console.print(Text(message, style=style))


def print_error_panel(error: str | Exception) -> None:
    """Print an error message in a red Rich panel.

    Parameters
    ----------
    error:
        Error message string or Exception instance.
    """
    error_text = str(error)
    _console.print(
        Panel(
            Text(error_text, style="bold white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            expand=False,
        )
    )
