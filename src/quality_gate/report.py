"""Quality gate report renderer.

Renders a :class:`QualityReport` as plain text, Markdown or JSON.  Every
format lists checks in configuration order and keeps three kinds of
failure apart: a check that ran and found errors, a check that could not
be run (execution error or timeout), and a check whose output could not be
parsed.  Skipped checks are labelled as skipped.

This module contains only pure functions -- no I/O, no side effects.
"""

from __future__ import annotations

import json
import logging
from enum import Enum

from src.gate_shared.models import CheckResult, FailureKind, QualityReport

logger = logging.getLogger(__name__)


class ReportFormat(str, Enum):
    """Output formats supported by :func:`render_report`."""
    TEXT = "text"
    MARKDOWN = "markdown"
    JSON = "json"


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

_FAILURE_LABELS: dict[FailureKind, str] = {
    FailureKind.EXECUTION_ERROR: "ERROR",
    FailureKind.TIMEOUT: "TIMEOUT",
}

_FAILURE_TEXT: dict[FailureKind, str] = {
    FailureKind.EXECUTION_ERROR: "execution error",
    FailureKind.TIMEOUT: "timeout",
}


def _verdict_text(passed: bool) -> str:
    return "PASSED" if passed else "FAILED"


def _result_label(result: CheckResult) -> str:
    """Return the short status label for a check result."""
    if result.skipped:
        return "SKIP"
    if result.failure_reason is not None:
        return _FAILURE_LABELS[result.failure_reason]
    return "PASS" if result.passed else "FAIL"


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _outcome_summary(result: CheckResult) -> str:
    """Describe what happened to a check in one phrase."""
    if result.skipped:
        return result.detail or "skipped"
    if result.failure_reason is not None:
        kind = _FAILURE_TEXT[result.failure_reason]
        if result.detail:
            return f"could not run ({kind}): {result.detail}"
        return f"could not run ({kind})"

    counts = (
        f"{_plural(result.error_count, 'error')}, "
        f"{_plural(result.warning_count, 'warning')}, exit code {result.exit_code}"
    )
    if result.parse_error is not None:
        return f"output could not be parsed ({result.parse_error}); {counts}"
    return counts


def _format_duration(ms: int) -> str:
    """Format a duration in milliseconds to a human-readable string."""
    seconds = ms / 1000
    if seconds < 1.0:
        return f"{ms}ms"
    if seconds < 60.0:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    remaining = seconds % 60
    return f"{minutes}m {remaining:.1f}s"


def _escape(text: str) -> str:
    """Make *text* safe for a single Markdown table cell."""
    return text.replace("|", "\\|").replace("\n", " ")


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


def _render_text(report: QualityReport) -> str:
    lines: list[str] = [
        "Quality Gate Report",
        f"Run: {report.run_id}",
        f"Timestamp: {report.timestamp}",
        f"Mode: {report.mode.value}" + (" (fail-fast)" if report.fail_fast else ""),
        f"Verdict: {_verdict_text(report.overall_passed)}",
        "",
    ]

    width = max((len(r.name) for r in report.results), default=0)
    for result in report.results:
        label = f"[{_result_label(result)}]".ljust(9)
        duration = "" if result.skipped else f" ({_format_duration(result.duration_ms)})"
        lines.append(
            f"{label} {result.name.ljust(width)}  {_outcome_summary(result)}{duration}"
        )

    lines.append("")
    lines.append(
        f"Totals: {report.passed_count} passed, {report.failed_count} failed, "
        f"{report.skipped_count} skipped; "
        f"{_plural(report.total_errors, 'error')}, "
        f"{_plural(report.total_warnings, 'warning')}; "
        f"duration {_format_duration(report.duration_ms)}"
    )
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Markdown section builders
# ---------------------------------------------------------------------------


def _header_section(report: QualityReport) -> str:
    """Build the title / header section."""
    lines: list[str] = [
        "# Quality Gate Report",
        "",
        f"**Verdict:** {_verdict_text(report.overall_passed)}",
        "",
        f"- Run: `{report.run_id}`",
        f"- Timestamp: {report.timestamp}",
        f"- Mode: {report.mode.value}",
        f"- Fail-fast: {'yes' if report.fail_fast else 'no'}",
    ]
    return "\n".join(lines)


def _summary_section(report: QualityReport) -> str:
    """Build the summary statistics section."""
    lines: list[str] = [
        "## Summary",
        "",
        "| Metric | Value |",
        "|---|---|",
        f"| Overall verdict | {_verdict_text(report.overall_passed)} |",
        f"| Checks | {len(report.results)} |",
        f"| Passed | {report.passed_count} |",
        f"| Failed | {report.failed_count} |",
        f"| Skipped | {report.skipped_count} |",
        f"| Total errors | {report.total_errors} |",
        f"| Total warnings | {report.total_warnings} |",
        f"| Duration | {_format_duration(report.duration_ms)} |",
    ]
    return "\n".join(lines)


def _per_check_section(report: QualityReport) -> str:
    """Build the per-check results table."""
    lines: list[str] = ["## Checks", ""]

    if not report.results:
        lines.append("No checks executed.")
        return "\n".join(lines)

    lines.append("| Check | Severity | Status | Exit code | Errors | Warnings | Duration |")
    lines.append("|---|---|---|---|---|---|---|")
    for r in report.results:
        exit_code = "--" if r.exit_code is None else str(r.exit_code)
        duration = "--" if r.skipped else _format_duration(r.duration_ms)
        lines.append(
            f"| {_escape(r.name)} | {r.severity.value} | {_result_label(r)} | "
            f"{exit_code} | {r.error_count} | {r.warning_count} | {duration} |"
        )
    return "\n".join(lines)


def _problems_section(report: QualityReport) -> str:
    """Build the problems section, split by kind of failure."""
    lines: list[str] = ["## Problems", ""]

    not_run = [r for r in report.results if r.could_not_run]
    unparsed = [r for r in report.results if r.parse_error is not None and not r.could_not_run]
    failures = [
        r for r in report.results
        if not r.passed and not r.skipped and not r.could_not_run
    ]

    if not (not_run or unparsed or failures):
        lines.append("No problems found.")
        return "\n".join(lines)

    if not_run:
        lines.append(f"### Could not run ({len(not_run)})")
        lines.append("")
        for r in not_run:
            kind = _FAILURE_TEXT[r.failure_reason]  # type: ignore[index]
            detail = f": {_escape(r.detail)}" if r.detail else ""
            lines.append(f"- **{_escape(r.name)}** ({kind}){detail}")
        lines.append("")

    if unparsed:
        lines.append(f"### Output could not be parsed ({len(unparsed)})")
        lines.append("")
        for r in unparsed:
            lines.append(
                f"- **{_escape(r.name)}**: {_escape(r.parse_error or '')} "
                f"(counted from exit code {r.exit_code})"
            )
        lines.append("")

    if failures:
        lines.append(f"### Check failures ({len(failures)})")
        lines.append("")
        for r in failures:
            lines.append(
                f"- **{_escape(r.name)}** ran and found "
                f"{_plural(r.error_count, 'error')} (exit code {r.exit_code})"
            )
        lines.append("")

    return "\n".join(lines).rstrip("\n")


def _recommendations_section(report: QualityReport) -> str:
    """Build actionable recommendations based on findings."""
    lines: list[str] = ["## Recommendations", ""]
    recommendations: list[str] = []

    if not report.overall_passed:
        recommendations.append(
            "- **Blocking:** Zero tolerance applies. Every check must exit 0 "
            "with no errors before merging."
        )

    timeouts = [r.name for r in report.results if r.failure_reason == FailureKind.TIMEOUT]
    if timeouts:
        recommendations.append(
            f"- **Timeouts ({len(timeouts)}):** {', '.join(timeouts)} exceeded the "
            "time limit. Raise `timeout_ms` or speed the check up."
        )

    spawn_errors = [
        r.name for r in report.results if r.failure_reason == FailureKind.EXECUTION_ERROR
    ]
    if spawn_errors:
        recommendations.append(
            f"- **Execution errors ({len(spawn_errors)}):** {', '.join(spawn_errors)} "
            "could not be started. Verify the command is installed and on PATH."
        )

    unparsed = [r.name for r in report.results if r.parse_error is not None]
    if unparsed:
        recommendations.append(
            f"- **Parser mismatch ({len(unparsed)}):** {', '.join(unparsed)} produced "
            "output the configured parser did not understand. Check the tool's "
            "output format flag."
        )

    if report.skipped_count:
        recommendations.append(
            f"- **Skipped ({report.skipped_count}):** Fail-fast stopped the run early. "
            "Re-run without fail-fast to see every check."
        )

    if report.total_warnings:
        recommendations.append(
            f"- **Warnings ({report.total_warnings}):** Warnings do not fail the gate "
            "but should be reviewed."
        )

    if not recommendations:
        lines.append("All quality gate checks passed. No action required.")
    else:
        lines.extend(recommendations)
    return "\n".join(lines)


def _render_markdown(report: QualityReport) -> str:
    sections: list[str] = [
        _header_section(report),
        _summary_section(report),
        _per_check_section(report),
        _problems_section(report),
        _recommendations_section(report),
    ]
    return "\n\n".join(sections) + "\n"


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def _render_json(report: QualityReport) -> str:
    return json.dumps(report.to_dict(), indent=2, sort_keys=True) + "\n"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

_RENDERERS = {
    ReportFormat.TEXT: _render_text,
    ReportFormat.MARKDOWN: _render_markdown,
    ReportFormat.JSON: _render_json,
}


def render_report(report: QualityReport, fmt: ReportFormat | str = ReportFormat.TEXT) -> str:
    """Render *report* in the requested format.

    This is a pure function: the same report always renders to the same
    string.  Checks appear in ``report.results`` order; nothing is re-sorted
    by severity or outcome.

    Args:
        report: The report produced by the engine.
        fmt: ``text``, ``markdown`` or ``json``.

    Returns:
        The rendered report, ending with a newline.

    Raises:
        ValueError: If *fmt* is not a known format.
    """
    fmt = ReportFormat(fmt)
    logger.debug(
        "Rendering quality gate report (format=%s, passed=%s, checks=%d)",
        fmt.value,
        report.overall_passed,
        len(report.results),
    )
    return _RENDERERS[fmt](report)
