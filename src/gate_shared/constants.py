"""Shared constants for the quality gate."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Files and directories
# ---------------------------------------------------------------------------
DEFAULT_CONFIG_FILE = "quality-gate.yml"
STATE_DIR = ".quality-gate"
HISTORY_FILE = "history.jsonl"

# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------
# Exit code recorded for a check that could not be run to completion.
UNRUN_EXIT_CODE = -1

# Captured stdout/stderr are tail-capped to this many characters per stream.
MAX_CAPTURED_OUTPUT_CHARS = 64_000

# Seconds to wait for a killed process group to be reaped.
KILL_GRACE_SECONDS = 5.0

# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------
# CSV column order.
HISTORY_FIELDS = [
    "run_id",
    "timestamp",
    "mode",
    "overall_passed",
    "total_errors",
    "total_warnings",
    "passed_count",
    "failed_count",
    "skipped_count",
    "duration_ms",
    "failed_checks",
]
