"""Quality Gate Engine -- runs the configured checks under zero tolerance.

Executes an ordered set of independent checks (lint, type-check, format,
test, build) and aggregates their outcomes:

    sequential -- checks run one after another in configuration order;
                  with ``fail_fast`` the first failing check skips the rest
    parallel   -- every check runs concurrently; ``fail_fast`` is ignored

Results are always reported in configuration order, whatever the completion
order.  Per-check problems (spawn errors, timeouts, unparseable output) are
recorded on the affected :class:`CheckResult` and never abort the run; only
an invalid configuration raises, and it does so before any check starts.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Sequence

from src.gate_shared.constants import MAX_CAPTURED_OUTPUT_CHARS, UNRUN_EXIT_CODE
from src.gate_shared.models import (
    CheckDefinition,
    CheckOutput,
    CheckResult,
    ExecutionMode,
    ExecutionOutcome,
    FailureKind,
    ParsedCounts,
    QualityReport,
    RunOptions,
)
from src.gate_shared.protocols import CommandExecutor
from src.quality_gate.executor import SubprocessExecutor
from src.quality_gate.scan_aggregator import ScanAggregator
from src.quality_gate.state_machine import create_run_machine
from src.shared.errors import ConfigurationError
from src.shared.logging import run_id_var
from src.shared.utils import now_iso, tail

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration validation
# ---------------------------------------------------------------------------


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _command_is_empty(command: object) -> bool:
    if isinstance(command, str):
        return not command.strip()
    if isinstance(command, (list, tuple)):
        return not command or not all(isinstance(a, str) for a in command) or not command[0]
    return True


def validate_checks(
    checks: Sequence[CheckDefinition], options: RunOptions
) -> list[str]:
    """Return every configuration problem found in *checks* and *options*.

    An empty list means the run may start.
    """
    issues: list[str] = []

    if not checks:
        issues.append("no checks configured")

    seen: set[str] = set()
    for index, check in enumerate(checks):
        name = check.name
        if not isinstance(name, str) or not name.strip():
            issues.append(f"check #{index + 1} has an empty name")
            name = f"#{index + 1}"
        elif name in seen:
            issues.append(f"duplicate check name '{name}'")
        seen.add(name)

        if _command_is_empty(check.command):
            issues.append(f"check '{name}' has an empty command")
        if check.timeout_ms is not None and not _is_positive_int(check.timeout_ms):
            issues.append(f"check '{name}' timeout_ms must be a positive integer")
        if check.parse_output is not None and not callable(check.parse_output):
            issues.append(f"check '{name}' parse_output is not callable")

    if options.timeout_ms is not None and not _is_positive_int(options.timeout_ms):
        issues.append("default timeout_ms must be a positive integer")

    try:
        ExecutionMode(options.mode)
    except ValueError:
        issues.append(f"unknown execution mode '{options.mode}'")

    return issues


# ---------------------------------------------------------------------------
# Run model
# ---------------------------------------------------------------------------


class GateRun:
    """State machine model for one invocation of the engine.

    The ``state`` attribute is managed by the ``AsyncMachine``.
    """

    def __init__(self, run_id: str, issues: list[str] | None = None) -> None:
        self.run_id = run_id
        self.issues: list[str] = list(issues or [])
        self.state: str = "not_started"
        self.machine = create_run_machine(self)

    def is_configured(self, *args, **kwargs) -> bool:
        """True when validation found no configuration issues."""
        return not self.issues


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class QualityGateEngine:
    """Runs checks through a :class:`CommandExecutor` and builds the report.

    Usage
    -----
    ::

        engine = QualityGateEngine()
        report = await engine.run_all(checks, RunOptions(mode=ExecutionMode.PARALLEL))
        verdict = compute_verdict(report)
    """

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        max_output_chars: int = MAX_CAPTURED_OUTPUT_CHARS,
    ) -> None:
        self._executor: CommandExecutor = executor or SubprocessExecutor()
        self._max_output_chars = max_output_chars
        self._aggregator = ScanAggregator()
        self.last_run: GateRun | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run_all(
        self,
        checks: Sequence[CheckDefinition],
        options: RunOptions | None = None,
    ) -> QualityReport:
        """Execute every check and aggregate the outcomes.

        Parameters
        ----------
        checks:
            Ordered, non-empty sequence of checks with unique names.
        options:
            Execution mode, fail-fast, default timeout and working
            directory.  Defaults to sequential without fail-fast.

        Returns
        -------
        QualityReport
            One result per check, in configuration order.

        Raises
        ------
        ConfigurationError
            If the configuration is invalid.  No check is started.
        """
        options = options or RunOptions()
        checks = list(checks)
        run = GateRun(run_id=uuid.uuid4().hex[:12], issues=validate_checks(checks, options))
        self.last_run = run
        token = run_id_var.set(run.run_id)
        try:
            await run.start()  # type: ignore[attr-defined]
            if run.state != "running":
                await run.reject()  # type: ignore[attr-defined]
                logger.error(
                    "Quality gate: configuration rejected -- %s", "; ".join(run.issues)
                )
                raise ConfigurationError("Invalid check configuration", issues=run.issues)

            mode = ExecutionMode(options.mode)
            timestamp = now_iso()
            start = time.monotonic()
            logger.info(
                "Quality gate: starting run %s -- checks=%d, mode=%s, fail_fast=%s",
                run.run_id,
                len(checks),
                mode.value,
                options.fail_fast,
            )

            if mode == ExecutionMode.PARALLEL:
                if options.fail_fast:
                    logger.info("Quality gate: fail_fast has no effect in parallel mode")
                results = await self._run_parallel(checks, options)
            else:
                results = await self._run_sequential(checks, options)

            report = self._aggregator.aggregate(
                results,
                run_id=run.run_id,
                timestamp=timestamp,
                mode=mode,
                fail_fast=options.fail_fast,
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            await run.finish()  # type: ignore[attr-defined]
            logger.info(
                "Quality gate: run %s complete -- passed=%s, "
                "checks=%d passed / %d failed / %d skipped, errors=%d, warnings=%d",
                run.run_id,
                report.overall_passed,
                report.passed_count,
                report.failed_count,
                report.skipped_count,
                report.total_errors,
                report.total_warnings,
            )
            return report
        finally:
            run_id_var.reset(token)

    def run_all_sync(
        self,
        checks: Sequence[CheckDefinition],
        options: RunOptions | None = None,
    ) -> QualityReport:
        """Blocking wrapper around :meth:`run_all` for synchronous callers."""
        return asyncio.run(self.run_all(checks, options))

    # ------------------------------------------------------------------
    # Execution modes
    # ------------------------------------------------------------------

    async def _run_sequential(
        self, checks: list[CheckDefinition], options: RunOptions
    ) -> list[CheckResult]:
        results: list[CheckResult] = []
        failed_at: str | None = None

        for index, check in enumerate(checks):
            if failed_at is not None:
                results.append(self._skipped(check, failed_at))
                continue

            result = await self._run_check(check, options)
            results.append(result)

            if options.fail_fast and not result.passed:
                failed_at = check.name
                remaining = len(checks) - index - 1
                if remaining:
                    logger.warning(
                        "Quality gate: check '%s' failed -- fail-fast skipping %d remaining check(s)",
                        check.name,
                        remaining,
                    )

        return results

    async def _run_parallel(
        self, checks: list[CheckDefinition], options: RunOptions
    ) -> list[CheckResult]:
        # gather() returns results in argument order, not completion order.
        return list(
            await asyncio.gather(*(self._run_check(check, options) for check in checks))
        )

    # ------------------------------------------------------------------
    # Single check
    # ------------------------------------------------------------------

    async def _run_check(self, check: CheckDefinition, options: RunOptions) -> CheckResult:
        timeout_ms = check.timeout_ms if check.timeout_ms is not None else options.timeout_ms
        timeout_s = timeout_ms / 1000 if timeout_ms else None

        logger.debug("Quality gate: running check '%s'", check.name)
        try:
            outcome = await self._executor.execute(check, timeout_s=timeout_s, cwd=options.cwd)
        except Exception as exc:
            logger.exception("Quality gate: executor raised for check '%s'", check.name)
            outcome = ExecutionOutcome(
                exit_code=UNRUN_EXIT_CODE,
                failure_reason=FailureKind.EXECUTION_ERROR,
                detail=f"executor error: {exc}",
            )

        result = self._build_result(check, outcome)
        logger.info(
            "Quality gate: check '%s' %s -- exit=%s, errors=%d, warnings=%d, duration=%dms",
            check.name,
            result.status.value,
            result.exit_code,
            result.error_count,
            result.warning_count,
            result.duration_ms,
        )
        return result

    def _build_result(self, check: CheckDefinition, outcome: ExecutionOutcome) -> CheckResult:
        if outcome.failure_reason is not None:
            return CheckResult(
                name=check.name,
                severity=check.severity,
                exit_code=outcome.exit_code,
                error_count=1,
                duration_ms=outcome.duration_ms,
                failure_reason=outcome.failure_reason,
                detail=outcome.detail,
                stdout=tail(outcome.stdout, self._max_output_chars),
                stderr=tail(outcome.stderr, self._max_output_chars),
            )

        # Parsers see the full output; only the stored copy is capped.
        counts, parse_error = self._parse(check, outcome)
        return CheckResult(
            name=check.name,
            severity=check.severity,
            exit_code=outcome.exit_code,
            error_count=counts.error_count,
            warning_count=counts.warning_count,
            duration_ms=outcome.duration_ms,
            parse_error=parse_error,
            detail=outcome.detail,
            stdout=tail(outcome.stdout, self._max_output_chars),
            stderr=tail(outcome.stderr, self._max_output_chars),
        )

    def _parse(
        self, check: CheckDefinition, outcome: ExecutionOutcome
    ) -> tuple[ParsedCounts, str | None]:
        """Apply the check's parser, falling back to exit-code counting."""
        fallback = ParsedCounts(error_count=0 if outcome.exit_code == 0 else 1)
        if check.parse_output is None:
            return fallback, None

        output = CheckOutput(
            exit_code=outcome.exit_code, stdout=outcome.stdout, stderr=outcome.stderr
        )
        try:
            counts = check.parse_output(output)
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            logger.warning(
                "Quality gate: output of check '%s' could not be parsed -- %s",
                check.name,
                reason,
            )
            return fallback, reason

        problem = _invalid_counts(counts)
        if problem:
            logger.warning(
                "Quality gate: parser for check '%s' returned invalid counts -- %s",
                check.name,
                problem,
            )
            return fallback, problem
        return counts, None

    def _skipped(self, check: CheckDefinition, failed_check: str) -> CheckResult:
        return CheckResult(
            name=check.name,
            severity=check.severity,
            skipped=True,
            detail=f"skipped: fail-fast after '{failed_check}'",
        )


def _invalid_counts(counts: object) -> str | None:
    if not isinstance(counts, ParsedCounts):
        return f"parser returned {type(counts).__name__}, expected ParsedCounts"
    for field_name in ("error_count", "warning_count"):
        value = getattr(counts, field_name)
        if not isinstance(value, int) or isinstance(value, bool):
            return f"{field_name} is not an integer: {value!r}"
        if value < 0:
            return f"{field_name} is negative: {value}"
    return None
