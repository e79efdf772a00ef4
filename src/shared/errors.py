"""Custom exception classes for the quality gate."""
from __future__ import annotations


class GateError(Exception):
    """Base quality gate error."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class ConfigurationError(GateError):
    """Malformed or contradictory check configuration.

    Raised before any check runs; the run never starts.
    """

    def __init__(self, detail: str = "Invalid configuration", issues: list[str] | None = None) -> None:
        self.issues = list(issues) if issues else []
        if self.issues:
            detail = f"{detail}: " + "; ".join(self.issues)
        super().__init__(detail=detail)


class OutputParseError(GateError):
    """A check's raw output could not be interpreted by its parser."""

    def __init__(self, detail: str = "Unparseable output") -> None:
        super().__init__(detail=detail)
