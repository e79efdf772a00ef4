"""Tests for report sinks."""

from __future__ import annotations

import io
from pathlib import Path

from src.gate_runner.sinks import ConsoleSink, FileSink
from src.gate_shared.models import QualityReport
from src.gate_shared.protocols import ReportSink


class TestConsoleSink:
    def test_writes_to_stream(self, sample_report: QualityReport):
        buf = io.StringIO()
        ConsoleSink(stream=buf).write("rendered\n", sample_report)
        assert buf.getvalue() == "rendered\n"

    def test_defaults_to_stdout(self, capsys, sample_report: QualityReport):
        ConsoleSink().write("to stdout\n", sample_report)
        assert capsys.readouterr().out == "to stdout\n"


class TestFileSink:
    def test_writes_file_and_creates_parents(self, tmp_path: Path, sample_report: QualityReport):
        path = tmp_path / "reports" / "gate.md"
        FileSink(path).write("# Report\n", sample_report)

        assert path.read_text(encoding="utf-8") == "# Report\n"
        assert not list(path.parent.glob("*.tmp"))

    def test_overwrites(self, tmp_path: Path, sample_report: QualityReport):
        path = tmp_path / "gate.json"
        path.write_text("old", encoding="utf-8")
        FileSink(path).write("new", sample_report)

        assert path.read_text(encoding="utf-8") == "new"


def test_sinks_satisfy_protocol(tmp_path: Path):
    assert isinstance(ConsoleSink(), ReportSink)
    assert isinstance(FileSink(tmp_path / "x"), ReportSink)
