"""Shared test fixtures for the quality gate test suite."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Generator

import pytest

from src.gate_shared.models import (
    CheckDefinition,
    CheckResult,
    ExecutionMode,
    FailureKind,
    QualityReport,
    Severity,
)

PYTHON = sys.executable


@pytest.fixture(autouse=True)
def _reset_gate_logging() -> Generator[None, None, None]:
    """Drop handlers the CLI installs so they never outlive a captured stream."""
    yield
    logger = logging.getLogger("src")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def python_check():
    """Factory for checks that run a short Python snippet as a subprocess."""

    def _make(name: str, code: str, **kwargs) -> CheckDefinition:
        return CheckDefinition(name=name, command=(PYTHON, "-c", code), **kwargs)

    return _make


@pytest.fixture
def sample_report() -> QualityReport:
    """A failed report with one result of every kind, in configuration order."""
    results = (
        CheckResult(name="lint", severity=Severity.LOW, exit_code=0, warning_count=2, duration_ms=120),
        CheckResult(name="typecheck", severity=Severity.CRITICAL, exit_code=2, error_count=3, duration_ms=2500),
        CheckResult(
            name="format",
            severity=Severity.HIGH,
            exit_code=-1,
            error_count=1,
            duration_ms=5000,
            failure_reason=FailureKind.TIMEOUT,
            detail="timed out after 5000ms",
        ),
        CheckResult(
            name="test",
            severity=Severity.MEDIUM,
            exit_code=1,
            error_count=1,
            duration_ms=800,
            parse_error="invalid JSON output",
        ),
        CheckResult(
            name="build",
            severity=Severity.CRITICAL,
            skipped=True,
            detail="skipped: fail-fast after 'test'",
        ),
    )
    return QualityReport(
        run_id="abc123",
        timestamp="2026-01-01T00:00:00+00:00",
        results=results,
        overall_passed=False,
        total_errors=5,
        total_warnings=2,
        mode=ExecutionMode.SEQUENTIAL,
        fail_fast=True,
        duration_ms=8420,
    )


@pytest.fixture
def write_config(tmp_path: Path):
    """Write a YAML config into ``tmp_path`` and return its path."""

    def _write(text: str, name: str = "quality-gate.yml") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
