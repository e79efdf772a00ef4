"""History store -- appends one summary record per gate run.

Records go to a JSON Lines file (``.jsonl`` / ``.json``) or, when the path
ends in ``.csv``, to a CSV file with a header row.  Writing history is
never allowed to affect the verdict: a failed append is logged and
reported as ``False``, never raised.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any

from src.gate_shared.constants import HISTORY_FIELDS
from src.gate_shared.models import QualityReport

logger = logging.getLogger(__name__)

_INT_FIELDS = (
    "total_errors",
    "total_warnings",
    "passed_count",
    "failed_count",
    "skipped_count",
    "duration_ms",
)


def history_record(report: QualityReport) -> dict[str, Any]:
    """Summarise *report* as a flat history record."""
    return {
        "run_id": report.run_id,
        "timestamp": report.timestamp,
        "mode": report.mode.value,
        "overall_passed": report.overall_passed,
        "total_errors": report.total_errors,
        "total_warnings": report.total_warnings,
        "passed_count": report.passed_count,
        "failed_count": report.failed_count,
        "skipped_count": report.skipped_count,
        "duration_ms": report.duration_ms,
        "failed_checks": [r.name for r in report.results if not r.passed and not r.skipped],
    }


def _normalise(raw: dict[str, Any]) -> dict[str, Any]:
    """Coerce a stored record (JSON or CSV strings) to typed values."""
    record: dict[str, Any] = {key: raw.get(key) for key in HISTORY_FIELDS}
    for key in _INT_FIELDS:
        record[key] = int(record[key] or 0)
    passed = record["overall_passed"]
    if isinstance(passed, str):
        passed = passed.strip().lower() == "true"
    record["overall_passed"] = bool(passed)
    failed = record["failed_checks"] or []
    if isinstance(failed, str):
        failed = [name for name in failed.split(";") if name]
    record["failed_checks"] = list(failed)
    return record


class HistoryStore:
    """Append-only log of past run summaries.

    Args:
        path: History file.  ``.csv`` selects CSV; anything else is JSONL.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    @property
    def is_csv(self) -> bool:
        return self.path.suffix.lower() == ".csv"

    def append(self, report: QualityReport) -> bool:
        """Append a record for *report*.

        Returns:
            ``True`` if the record was written.
        """
        record = history_record(report)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.is_csv:
                self._append_csv(record)
            else:
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(record, sort_keys=True) + "\n")
        except Exception as exc:
            logger.warning("HistoryStore.append failed (non-blocking): %s", exc)
            return False
        logger.debug("Recorded run %s in %s", report.run_id, self.path)
        return True

    def read(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Return stored records, oldest first.

        Args:
            limit: Only return the most recent *limit* records.

        Malformed records are skipped.  A missing file yields ``[]``.
        """
        if not self.path.exists():
            return []

        with open(self.path, "r", encoding="utf-8", newline="") as f:
            text = f.read()

        raw_records = self._read_csv(text) if self.is_csv else self._read_jsonl(text)
        records: list[dict[str, Any]] = []
        for raw in raw_records:
            try:
                records.append(_normalise(raw))
            except (TypeError, ValueError) as exc:
                logger.debug("Skipping malformed history record in %s: %s", self.path, exc)

        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return records

    # ------------------------------------------------------------------
    # Format helpers
    # ------------------------------------------------------------------

    def _append_csv(self, record: dict[str, Any]) -> None:
        row = dict(record)
        row["overall_passed"] = "true" if record["overall_passed"] else "false"
        row["failed_checks"] = ";".join(record["failed_checks"])
        write_header = not self.path.exists() or self.path.stat().st_size == 0
        with open(self.path, "a", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=HISTORY_FIELDS)
            if write_header:
                writer.writeheader()
            writer.writerow(row)

    def _read_csv(self, text: str) -> list[dict[str, Any]]:
        return list(csv.DictReader(io.StringIO(text)))

    def _read_jsonl(self, text: str) -> list[dict[str, Any]]:
        records: list[dict[str, Any]] = []
        for line in text.splitlines():
            if not line.strip():
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Skipping unparseable history line in %s", self.path)
                continue
            if isinstance(data, dict):
                records.append(data)
        return records
