"""Subprocess executor for quality gate checks.

Runs a check's command as an opaque external process and reports what
happened as an :class:`ExecutionOutcome`.  A string command runs through
the shell; a sequence runs directly via ``asyncio.create_subprocess_exec``.

Each child is started in its own session on POSIX so that the whole
process group (the shell and anything it spawned) can be killed on
timeout, cancellation, or aggregator shutdown.  Live processes are tracked
in a :class:`ProcessRegistry` so the shutdown handler can reach them.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
import threading
import time

from src.gate_shared.constants import KILL_GRACE_SECONDS, UNRUN_EXIT_CODE
from src.gate_shared.models import CheckDefinition, ExecutionOutcome, FailureKind

logger = logging.getLogger(__name__)

_POSIX = sys.platform != "win32"


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def kill_process_tree(proc: asyncio.subprocess.Process) -> None:
    """Kill *proc* and, on POSIX, every process in its group."""
    try:
        if _POSIX:
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        # Already gone.
        return
    except PermissionError:
        proc.kill()


class ProcessRegistry:
    """Tracks live check processes so they can be killed on shutdown.

    The registry is shared between the executor (which adds and discards
    processes) and :class:`~src.gate_runner.shutdown.GracefulShutdown`
    (which calls :meth:`kill_all` from a signal handler).
    """

    def __init__(self) -> None:
        self._procs: set[asyncio.subprocess.Process] = set()
        self._lock = threading.Lock()

    def add(self, proc: asyncio.subprocess.Process) -> None:
        with self._lock:
            self._procs.add(proc)

    def discard(self, proc: asyncio.subprocess.Process) -> None:
        with self._lock:
            self._procs.discard(proc)

    def __len__(self) -> int:
        with self._lock:
            return len(self._procs)

    def kill_all(self) -> int:
        """Kill every tracked process that is still running.

        Returns:
            Number of processes signalled.
        """
        with self._lock:
            procs = list(self._procs)
        killed = 0
        for proc in procs:
            if proc.returncode is None:
                kill_process_tree(proc)
                killed += 1
        if killed:
            logger.warning("Killed %d running check process(es)", killed)
        return killed


class SubprocessExecutor:
    """Runs check commands as local subprocesses.

    Never raises for spawn failures or timeouts: both are reported in the
    returned :class:`ExecutionOutcome` via ``failure_reason``.  Output is
    returned in full; capping what gets stored is up to the caller.
    """

    def __init__(self, registry: ProcessRegistry | None = None) -> None:
        self.registry = registry or ProcessRegistry()

    async def execute(
        self,
        check: CheckDefinition,
        timeout_s: float | None = None,
        cwd: str | None = None,
    ) -> ExecutionOutcome:
        workdir = check.cwd or cwd
        start = time.monotonic()

        try:
            proc = await self._spawn(check, workdir)
        except (OSError, ValueError) as exc:
            logger.warning("Check '%s' could not be started: %s", check.name, exc)
            return ExecutionOutcome(
                exit_code=UNRUN_EXIT_CODE,
                duration_ms=_elapsed_ms(start),
                failure_reason=FailureKind.EXECUTION_ERROR,
                detail=f"could not start process: {exc}",
            )

        self.registry.add(proc)
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(), timeout=timeout_s
            )
        except asyncio.TimeoutError:
            timeout_ms = int((timeout_s or 0) * 1000)
            logger.warning(
                "Check '%s' timed out after %dms -- killing process group",
                check.name,
                timeout_ms,
            )
            return ExecutionOutcome(
                exit_code=UNRUN_EXIT_CODE,
                duration_ms=_elapsed_ms(start),
                failure_reason=FailureKind.TIMEOUT,
                detail=f"timed out after {timeout_ms}ms",
            )
        finally:
            if proc.returncode is None:
                kill_process_tree(proc)
                await self._reap(proc, check.name)
            self.registry.discard(proc)

        return ExecutionOutcome(
            exit_code=proc.returncode if proc.returncode is not None else UNRUN_EXIT_CODE,
            stdout=self._decode(stdout_bytes),
            stderr=self._decode(stderr_bytes),
            duration_ms=_elapsed_ms(start),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _spawn(
        self, check: CheckDefinition, workdir: str | None
    ) -> asyncio.subprocess.Process:
        env = {**os.environ, **check.env} if check.env else None
        kwargs: dict = {
            "stdout": asyncio.subprocess.PIPE,
            "stderr": asyncio.subprocess.PIPE,
            "stdin": asyncio.subprocess.DEVNULL,
            "cwd": workdir,
            "env": env,
        }
        if _POSIX:
            kwargs["start_new_session"] = True

        if isinstance(check.command, str):
            logger.debug("Running check '%s' via shell: %s", check.name, check.command)
            return await asyncio.create_subprocess_shell(check.command, **kwargs)

        argv = list(check.command)
        logger.debug("Running check '%s': %s", check.name, " ".join(argv))
        return await asyncio.create_subprocess_exec(*argv, **kwargs)

    async def _reap(self, proc: asyncio.subprocess.Process, name: str) -> None:
        try:
            await asyncio.wait_for(proc.wait(), timeout=KILL_GRACE_SECONDS)
        except asyncio.TimeoutError:
            logger.error(
                "Process for check '%s' (pid %s) did not exit after kill", name, proc.pid
            )

    def _decode(self, data: bytes | None) -> str:
        if not data:
            return ""
        return data.decode(errors="replace")
