"""Report sinks: where a rendered report ends up."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

from src.gate_shared.models import QualityReport
from src.gate_shared.utils import atomic_write_text

logger = logging.getLogger(__name__)


class ConsoleSink:
    """Writes the rendered report to a text stream (stdout by default)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def write(self, rendered: str, report: QualityReport) -> None:
        stream = self._stream or sys.stdout
        stream.write(rendered)
        stream.flush()


class FileSink:
    """Writes the rendered report to a file, atomically.

    Parent directories are created as needed and an existing file is
    replaced in one step, so readers never see a half-written report.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def write(self, rendered: str, report: QualityReport) -> None:
        atomic_write_text(self.path, rendered)
        logger.info("Quality gate report for run %s written to %s", report.run_id, self.path)
