"""Graceful shutdown handler for a gate run.

Handles both Windows (``signal.signal``) and Unix
(``loop.add_signal_handler``) signal registration with a reentrancy guard.
On SIGINT / SIGTERM every live check process is killed and the running
gate task is cancelled, so no check outlives the aggregator.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Any

from src.quality_gate.executor import ProcessRegistry

logger = logging.getLogger(__name__)

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class GracefulShutdown:
    """Manages graceful shutdown on SIGINT / SIGTERM.

    Usage::

        registry = ProcessRegistry()
        shutdown = GracefulShutdown(registry)
        shutdown.install(asyncio.current_task())
        try:
            report = await engine.run_all(checks, options)
        finally:
            shutdown.uninstall()
    """

    def __init__(self, registry: ProcessRegistry) -> None:
        self._registry = registry
        self._task: asyncio.Task | None = None
        self._should_stop = False
        self._handling = False  # reentrancy guard
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous: dict[int, Any] = {}

    @property
    def should_stop(self) -> bool:
        """Whether a shutdown signal has been received."""
        return self._should_stop

    def install(self, task: asyncio.Task | None = None) -> None:
        """Register signal handlers for SIGINT and SIGTERM.

        On Windows, uses ``signal.signal`` directly.
        On Unix, uses ``loop.add_signal_handler`` if a running event loop
        is available, falling back to ``signal.signal``.

        Args:
            task: The task to cancel when a signal arrives.
        """
        self._task = task
        if sys.platform != "win32":
            try:
                loop = asyncio.get_running_loop()
                for sig in _SIGNALS:
                    loop.add_signal_handler(sig, self._async_handler)
                self._loop = loop
                return
            except (RuntimeError, NotImplementedError):
                # No running loop -- fall back to signal.signal
                pass
        for sig in _SIGNALS:
            self._previous[sig] = signal.signal(sig, self._signal_handler)

    def uninstall(self) -> None:
        """Restore the signal handlers that were active before :meth:`install`."""
        if self._loop is not None:
            for sig in _SIGNALS:
                self._loop.remove_signal_handler(sig)
            self._loop = None
        for sig, previous in self._previous.items():
            signal.signal(sig, previous)
        self._previous.clear()
        self._task = None

    def _signal_handler(self, signum: int, frame: Any) -> None:
        """Synchronous signal handler (Windows / fallback)."""
        if self._handling:
            return  # reentrancy guard
        self._handling = True
        logger.warning("Received signal %s -- stopping quality gate", signum)
        self._shutdown(threadsafe=True)
        self._handling = False

    def _async_handler(self) -> None:
        """Async-compatible signal handler (Unix)."""
        if self._handling:
            return  # reentrancy guard
        self._handling = True
        logger.warning("Received shutdown signal -- stopping quality gate")
        self._shutdown(threadsafe=False)
        self._handling = False

    def _shutdown(self, threadsafe: bool) -> None:
        self._should_stop = True
        try:
            self._registry.kill_all()
        except Exception:
            logger.exception("Failed to kill check processes during shutdown")

        task = self._task
        if task is None or task.done():
            return
        if threadsafe:
            task.get_loop().call_soon_threadsafe(task.cancel)
        else:
            task.cancel()
