"""Tests for SubprocessExecutor and ProcessRegistry using real processes.

Commands run the current interpreter (``sys.executable -c``) so the tests
do not depend on any toolchain being installed.
"""

from __future__ import annotations

import asyncio
import os
import sys
import time
from pathlib import Path

import pytest

from src.gate_shared.constants import MAX_CAPTURED_OUTPUT_CHARS
from src.gate_shared.models import (
    CheckDefinition,
    ExecutionMode,
    FailureKind,
    RunOptions,
)
from src.gate_shared.protocols import CommandExecutor
from src.quality_gate.executor import ProcessRegistry, SubprocessExecutor
from src.quality_gate.gate_engine import QualityGateEngine
from src.quality_gate.parsers import make_regex_parser, parse_eslint_json

PYTHON = sys.executable


def _pid_alive(pid: int) -> bool:
    """True while *pid* exists and is not a zombie awaiting its reaper."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    stat = Path(f"/proc/{pid}/stat")
    try:
        return stat.read_text().rsplit(")", 1)[1].split()[0] != "Z"
    except OSError:
        return True


async def _wait_gone(pid: int, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while _pid_alive(pid):
        if time.monotonic() > deadline:
            return False
        await asyncio.sleep(0.05)
    return True


class TestSubprocessExecutor:
    async def test_success_captures_output(self, python_check):
        check = python_check("ok", "import sys; print('hello'); print('oops', file=sys.stderr)")
        outcome = await SubprocessExecutor().execute(check)

        assert outcome.exit_code == 0
        assert outcome.stdout.strip() == "hello"
        assert outcome.stderr.strip() == "oops"
        assert outcome.failure_reason is None
        assert outcome.duration_ms >= 0

    async def test_nonzero_exit(self, python_check):
        outcome = await SubprocessExecutor().execute(python_check("fail", "raise SystemExit(3)"))

        assert outcome.exit_code == 3
        assert outcome.failure_reason is None

    async def test_spawn_error(self):
        check = CheckDefinition(name="missing", command=("definitely-not-a-real-binary-xyz",))
        outcome = await SubprocessExecutor().execute(check)

        assert outcome.exit_code == -1
        assert outcome.failure_reason == FailureKind.EXECUTION_ERROR
        assert "could not start process" in outcome.detail

    async def test_timeout_kills_process(self, python_check):
        check = python_check("hang", "import time; time.sleep(30)")
        registry = ProcessRegistry()
        start = time.monotonic()
        outcome = await SubprocessExecutor(registry=registry).execute(check, timeout_s=0.3)
        elapsed = time.monotonic() - start

        assert outcome.failure_reason == FailureKind.TIMEOUT
        assert outcome.exit_code == -1
        assert outcome.detail == "timed out after 300ms"
        assert elapsed < 2
        assert len(registry) == 0

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell")
    async def test_shell_command(self):
        check = CheckDefinition(name="shell", command="echo one && echo two")
        outcome = await SubprocessExecutor().execute(check)

        assert outcome.exit_code == 0
        assert outcome.stdout.split() == ["one", "two"]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX process groups")
    async def test_timeout_kills_shell_grandchildren(self, tmp_path: Path):
        pidfile = tmp_path / "sleeper.pid"
        check = CheckDefinition(
            name="spawner", command=f"sleep 30 & echo $! > '{pidfile}'; wait"
        )
        outcome = await SubprocessExecutor().execute(check, timeout_s=0.3)

        assert outcome.failure_reason == FailureKind.TIMEOUT
        sleeper = int(pidfile.read_text(encoding="utf-8").strip())
        assert await _wait_gone(sleeper)

    async def test_env_and_cwd(self, python_check, tmp_path: Path):
        check = python_check(
            "env",
            "import os; print(os.environ['GATE_TEST_VAR']); print(os.getcwd())",
            env={"GATE_TEST_VAR": "from-check"},
        )
        outcome = await SubprocessExecutor().execute(check, cwd=str(tmp_path))

        lines = outcome.stdout.splitlines()
        assert lines[0] == "from-check"
        assert Path(lines[1]).resolve() == tmp_path.resolve()

    async def test_check_cwd_overrides_default(self, python_check, tmp_path: Path):
        sub = tmp_path / "pkg"
        sub.mkdir()
        check = python_check("cwd", "import os; print(os.getcwd())", cwd=str(sub))
        outcome = await SubprocessExecutor().execute(check, cwd=str(tmp_path))

        assert Path(outcome.stdout.strip()).resolve() == sub.resolve()

    async def test_large_output_returned_in_full(self, python_check):
        code = f"print('START' + 'x' * {MAX_CAPTURED_OUTPUT_CHARS + 5000} + 'END')"
        check = python_check("noisy", code)
        outcome = await SubprocessExecutor().execute(check)

        assert outcome.stdout.startswith("START")
        assert outcome.stdout.rstrip().endswith("END")
        assert len(outcome.stdout) > MAX_CAPTURED_OUTPUT_CHARS

    async def test_invalid_utf8_replaced(self, python_check):
        check = python_check("bytes", "import sys; sys.stdout.buffer.write(b'ok \\xff\\xfe')")
        outcome = await SubprocessExecutor().execute(check)

        assert outcome.stdout.startswith("ok ")
        assert "�" in outcome.stdout

    async def test_cancellation_kills_process(self, python_check):
        registry = ProcessRegistry()
        executor = SubprocessExecutor(registry=registry)
        task = asyncio.create_task(executor.execute(python_check("hang", "import time; time.sleep(30)")))
        while len(registry) == 0:
            await asyncio.sleep(0.01)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(registry) == 0

    def test_satisfies_protocol(self):
        assert isinstance(SubprocessExecutor(), CommandExecutor)


class TestProcessRegistry:
    async def test_kill_all(self, python_check):
        registry = ProcessRegistry()
        executor = SubprocessExecutor(registry=registry)
        task = asyncio.create_task(executor.execute(python_check("hang", "import time; time.sleep(30)")))
        while len(registry) == 0:
            await asyncio.sleep(0.01)

        assert registry.kill_all() == 1
        outcome = await asyncio.wait_for(task, timeout=10)
        assert outcome.exit_code != 0
        assert len(registry) == 0

    def test_kill_all_empty(self):
        assert ProcessRegistry().kill_all() == 0


# ---------------------------------------------------------------------------
# End-to-end through the engine
# ---------------------------------------------------------------------------


class TestEngineWithRealProcesses:
    async def test_mixed_outcomes(self, python_check):
        lint = python_check(
            "lint",
            "print('src/a.ts: error no-unused-vars'); print('src/b.ts: error eqeqeq'); raise SystemExit(1)",
            parse_output=make_regex_parser(r": error "),
        )
        typecheck = python_check("typecheck", "pass")
        slow = python_check("test", "import time; time.sleep(30)", timeout_ms=300)
        missing = CheckDefinition(name="build", command=("definitely-not-a-real-binary-xyz",))

        engine = QualityGateEngine()
        report = await engine.run_all(
            [lint, typecheck, slow, missing], RunOptions(mode=ExecutionMode.PARALLEL)
        )

        by_name = {r.name: r for r in report.results}
        assert [r.name for r in report.results] == ["lint", "typecheck", "test", "build"]
        assert by_name["lint"].error_count == 2
        assert by_name["typecheck"].passed is True
        assert by_name["test"].failure_reason == FailureKind.TIMEOUT
        assert by_name["build"].failure_reason == FailureKind.EXECUTION_ERROR
        assert report.total_errors == 4
        assert report.overall_passed is False

    async def test_parallel_faster_than_sequential_sum(self, python_check):
        checks = [python_check(f"sleep{i}", "import time; time.sleep(0.5)") for i in range(3)]
        start = time.monotonic()
        report = await QualityGateEngine().run_all(checks, RunOptions(mode=ExecutionMode.PARALLEL))
        elapsed = time.monotonic() - start

        assert report.overall_passed is True
        assert elapsed < 1.4


# ---------------------------------------------------------------------------
# Output larger than the stored cap
# ---------------------------------------------------------------------------


class TestLargeOutput:
    async def test_early_error_counted_beyond_cap(self, python_check):
        code = (
            "print('ERROR: bad thing')\n"
            f"for _ in range({MAX_CAPTURED_OUTPUT_CHARS // 8 + 2000}): print('ok line')"
        )
        check = python_check("lint", code, parse_output=make_regex_parser(r"^ERROR:"))

        report = await QualityGateEngine().run_all([check])

        result = report.results[0]
        assert result.exit_code == 0
        assert result.error_count == 1
        assert result.parse_error is None
        assert result.passed is False
        assert report.overall_passed is False

    async def test_large_eslint_json_parsed_in_full(self, python_check):
        code = (
            "import json\n"
            "entries = [{'filePath': 'src/f%d.ts' % i, 'errorCount': 0, 'warningCount': 0,"
            " 'messages': [], 'source': 'x' * 200} for i in range(400)]\n"
            "entries[0].update(errorCount=3, warningCount=5)\n"
            "print(json.dumps(entries))\n"
            "raise SystemExit(1)"
        )
        check = python_check("lint", code, parse_output=parse_eslint_json)

        report = await QualityGateEngine().run_all([check])

        result = report.results[0]
        assert result.parse_error is None
        assert result.error_count == 3
        assert result.warning_count == 5

    async def test_stored_output_is_tail_capped(self, python_check):
        check = python_check("noisy", "print('HEAD' + 'x' * 5000 + 'END')")

        report = await QualityGateEngine(max_output_chars=100).run_all([check])

        stored = report.results[0].stdout
        assert len(stored) == 100
        assert stored.rstrip().endswith("END")
        assert "HEAD" not in stored
