"""Tests for src.gate_runner.display."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

import src.gate_runner.display as display_mod
from src.gate_runner.config import parse_gate_config
from src.gate_runner.display import (
    print_config_summary,
    print_error_panel,
    print_history_table,
    print_message,
    print_report_summary,
)
from src.gate_shared.models import CheckResult, QualityReport


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> io.StringIO:
    """Swap the module console for one writing into a buffer."""
    buf = io.StringIO()
    monkeypatch.setattr(display_mod, "_console", Console(file=buf, width=160, color_system=None))
    return buf


class TestPrintReportSummary:
    def test_verdict_and_rows(self, captured, sample_report: QualityReport):
        print_report_summary(sample_report)
        out = captured.getvalue()

        assert "Quality Gate Summary" in out
        assert "Verdict: FAILED" in out
        assert "TIMEOUT" in out
        assert "SKIPPED" in out
        assert "timed out after 5000ms" in out
        assert out.index("lint") < out.index("typecheck") < out.index("build")

    def test_passed(self, captured):
        report = QualityReport(
            run_id="r1", timestamp="t",
            results=(CheckResult(name="lint", exit_code=0),), overall_passed=True,
        )
        print_report_summary(report)
        assert "Verdict: PASSED" in captured.getvalue()


class TestOtherPanels:
    def test_config_summary(self, captured):
        config = parse_gate_config(
            {"mode": "parallel", "timeout_ms": 1000,
             "checks": [{"name": "lint", "command": ["npx", "eslint"], "parser": "eslint-json"}]}
        )
        print_config_summary(config)
        out = captured.getvalue()

        assert "parallel" in out
        assert "eslint-json" in out
        assert "npx eslint" in out
        assert "1000ms" in out

    def test_history_table(self, captured):
        print_history_table([
            {
                "run_id": "run-a", "timestamp": "2026-01-01", "mode": "sequential",
                "overall_passed": False, "total_errors": 3, "total_warnings": 0,
                "failed_checks": ["lint", "test"],
            },
        ])
        out = captured.getvalue()

        assert "run-a" in out
        assert "FAILED" in out
        assert "lint, test" in out

    def test_history_empty(self, captured):
        print_history_table([])
        assert "No recorded runs." in captured.getvalue()

    def test_error_panel(self, captured):
        print_error_panel(ValueError("bad things"))
        out = captured.getvalue()
        assert "Error" in out
        assert "bad things" in out

    def test_message(self, captured):
        print_message("Configuration OK")
        assert "Configuration OK" in captured.getvalue()
