"""Shared utility functions."""
from datetime import datetime, timezone


def now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def tail(text: str, limit: int) -> str:
    """Return at most the last *limit* characters of *text*."""
    if limit <= 0:
        return ""
    return text if len(text) <= limit else text[-limit:]
