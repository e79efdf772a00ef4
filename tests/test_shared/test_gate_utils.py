"""Tests for shared utility helpers."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from src.gate_shared import utils as gate_utils
from src.gate_shared.utils import atomic_write_text
from src.shared.utils import now_iso, tail


class TestNowIso:
    def test_is_utc_iso8601(self):
        parsed = datetime.fromisoformat(now_iso())
        assert parsed.utcoffset() is not None
        assert parsed.utcoffset().total_seconds() == 0


class TestTail:
    def test_short_text_unchanged(self):
        assert tail("abc", 10) == "abc"

    def test_keeps_last_characters(self):
        assert tail("abcdef", 3) == "def"

    def test_zero_limit(self):
        assert tail("abc", 0) == ""


class TestAtomicWriteText:
    def test_creates_parents(self, tmp_path: Path):
        target = tmp_path / "a" / "b" / "report.txt"
        result = atomic_write_text(target, "hello\n")

        assert target.read_text(encoding="utf-8") == "hello\n"
        assert result == target.resolve()

    def test_no_temp_file_left(self, tmp_path: Path):
        target = tmp_path / "report.json"
        atomic_write_text(target, "{}")
        assert [p.name for p in tmp_path.iterdir()] == ["report.json"]

    def test_failed_replace_keeps_original(self, tmp_path: Path, monkeypatch):
        target = tmp_path / "report.txt"
        target.write_text("original", encoding="utf-8")

        def _boom(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(gate_utils.os, "replace", _boom)
        with pytest.raises(OSError, match="disk full"):
            atomic_write_text(target, "new")

        assert target.read_text(encoding="utf-8") == "original"
        assert not (tmp_path / "report.txt.tmp").exists()
