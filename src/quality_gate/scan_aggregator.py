"""Result aggregator for the quality gate engine.

Aggregates per-check results into a unified :class:`QualityReport` and
derives the zero-tolerance verdict.
"""

from __future__ import annotations

from typing import Sequence

from src.gate_shared.models import (
    CheckResult,
    ExecutionMode,
    QualityReport,
    Verdict,
)
from src.shared.constants import EXIT_FAILED, EXIT_PASSED


class ScanAggregator:
    """Aggregates check results into a final report.

    Sums error and warning counts over every check that actually ran and
    derives the overall pass/fail.  Results keep the order they are given
    in, which the engine guarantees to be configuration order.
    """

    def aggregate(
        self,
        results: Sequence[CheckResult],
        run_id: str,
        timestamp: str,
        mode: ExecutionMode = ExecutionMode.SEQUENTIAL,
        fail_fast: bool = False,
        duration_ms: int = 0,
    ) -> QualityReport:
        """Produce a single QualityReport from per-check results.

        Args:
            results: Check results in configuration order.
            run_id: Identifier of the run.
            timestamp: ISO-8601 start time of the run.
            mode: Execution mode the results were produced in.
            fail_fast: Whether fail-fast was requested.
            duration_ms: Wall-clock duration of the whole run.

        Returns:
            A fully populated QualityReport.
        """
        ran = [r for r in results if not r.skipped]

        return QualityReport(
            run_id=run_id,
            timestamp=timestamp,
            results=tuple(results),
            overall_passed=self._compute_passed(results),
            total_errors=sum(r.error_count for r in ran),
            total_warnings=sum(r.warning_count for r in ran),
            mode=mode,
            fail_fast=fail_fast,
            duration_ms=duration_ms,
        )

    def _compute_passed(self, results: Sequence[CheckResult]) -> bool:
        """Zero tolerance: every check must have passed.

        A skipped check never counts as passed, and a report with no
        results is not a pass.
        """
        if not results:
            return False
        return all(r.passed for r in results)


def compute_verdict(report: QualityReport) -> Verdict:
    """Map a report to the gate's accept/reject decision and exit code.

    There are no partial-credit thresholds: any failing check anywhere
    fails the whole run.
    """
    passed = report.overall_passed
    return Verdict(passed=passed, exit_code=EXIT_PASSED if passed else EXIT_FAILED)
