"""Shared data models for the quality gate.

Every model produced by a run is a frozen dataclass: a ``CheckResult`` or
``QualityReport`` never changes after construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Sequence, Union


class Severity(str, Enum):
    """Reporting classification of a check.  Never affects pass/fail."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ExecutionMode(str, Enum):
    """How the configured checks are executed."""
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


class FailureKind(str, Enum):
    """Why a check could not be run to completion."""
    EXECUTION_ERROR = "execution_error"
    TIMEOUT = "timeout"


class CheckStatus(str, Enum):
    """Outcome of a single check."""
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


Command = Union[str, Sequence[str]]


@dataclass(frozen=True)
class CheckOutput:
    """Raw output of one check process, as handed to an output parser."""
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def combined(self) -> str:
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr


@dataclass(frozen=True)
class ParsedCounts:
    """Error and warning counts derived from a check's output."""
    error_count: int = 0
    warning_count: int = 0


OutputParser = Callable[[CheckOutput], ParsedCounts]


@dataclass(frozen=True)
class CheckDefinition:
    """One quality dimension to evaluate."""
    name: str
    command: Command
    severity: Severity = Severity.MEDIUM
    parse_output: OutputParser | None = None
    timeout_ms: int | None = None
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)

    @property
    def uses_shell(self) -> bool:
        return isinstance(self.command, str)

    def display_command(self) -> str:
        if isinstance(self.command, str):
            return self.command
        return " ".join(self.command)


@dataclass(frozen=True)
class RunOptions:
    """Options for a single gate run."""
    mode: ExecutionMode = ExecutionMode.SEQUENTIAL
    fail_fast: bool = False
    timeout_ms: int | None = None
    cwd: str | None = None


@dataclass(frozen=True)
class ExecutionOutcome:
    """What the executor observed for one process."""
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    failure_reason: FailureKind | None = None
    detail: str = ""


@dataclass(frozen=True)
class CheckResult:
    """Outcome of running one ``CheckDefinition``."""
    name: str
    severity: Severity = Severity.MEDIUM
    exit_code: int | None = None
    error_count: int = 0
    warning_count: int = 0
    duration_ms: int = 0
    failure_reason: FailureKind | None = None
    parse_error: str | None = None
    detail: str = ""
    skipped: bool = False
    stdout: str = ""
    stderr: str = ""

    @property
    def passed(self) -> bool:
        return not self.skipped and self.exit_code == 0 and self.error_count == 0

    @property
    def status(self) -> CheckStatus:
        if self.skipped:
            return CheckStatus.SKIPPED
        return CheckStatus.PASSED if self.passed else CheckStatus.FAILED

    @property
    def could_not_run(self) -> bool:
        return self.failure_reason is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-safe dict (captured output excluded)."""
        return {
            "name": self.name,
            "severity": self.severity.value,
            "status": self.status.value,
            "passed": self.passed,
            "exit_code": self.exit_code,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "duration_ms": self.duration_ms,
            "failure_reason": self.failure_reason.value if self.failure_reason else None,
            "parse_error": self.parse_error,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class QualityReport:
    """Aggregate of all check results for one run."""
    run_id: str
    timestamp: str
    results: tuple[CheckResult, ...] = ()
    overall_passed: bool = False
    total_errors: int = 0
    total_warnings: int = 0
    mode: ExecutionMode = ExecutionMode.SEQUENTIAL
    fail_fast: bool = False
    duration_ms: int = 0

    @property
    def passed_count(self) -> int:
        return sum(1 for r in self.results if r.status == CheckStatus.PASSED)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if r.status == CheckStatus.FAILED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.status == CheckStatus.SKIPPED)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-safe dict with results in configuration order."""
        return {
            "run_id": self.run_id,
            "timestamp": self.timestamp,
            "mode": self.mode.value,
            "fail_fast": self.fail_fast,
            "overall_passed": self.overall_passed,
            "total_errors": self.total_errors,
            "total_warnings": self.total_warnings,
            "passed_count": self.passed_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "duration_ms": self.duration_ms,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass(frozen=True)
class Verdict:
    """Final accept/reject decision for a run."""
    passed: bool
    exit_code: int
