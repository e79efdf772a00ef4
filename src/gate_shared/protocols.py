"""Runtime-checkable protocols for gate collaborators."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from src.gate_shared.models import CheckDefinition, ExecutionOutcome, QualityReport


@runtime_checkable
class CommandExecutor(Protocol):
    """Protocol for running one check's command as an external process."""

    async def execute(
        self,
        check: CheckDefinition,
        timeout_s: float | None = None,
        cwd: str | None = None,
    ) -> ExecutionOutcome:
        """Run *check* and report what happened.

        Args:
            check: The check whose command is invoked.
            timeout_s: Seconds before the process is killed, or ``None``.
            cwd: Working directory when the check does not set its own.

        Returns:
            The observed outcome.  Implementations must not raise for
            spawn failures or timeouts; those are reported in the outcome.
        """
        ...


@runtime_checkable
class ReportSink(Protocol):
    """Protocol for writers that receive a rendered report."""

    def write(self, rendered: str, report: QualityReport) -> None:
        """Deliver the rendered report text.

        Args:
            rendered: Output of ``render_report``.
            report: The structured report it was rendered from.
        """
        ...
