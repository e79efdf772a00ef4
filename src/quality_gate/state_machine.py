"""Per-run state machine using the ``transitions`` library.

A run starts in ``not_started``.  It moves to ``running`` only when its
configuration is valid (guard ``is_configured``); otherwise it is rejected
into ``configuration_error``.  ``completed`` is reached regardless of
individual check outcomes.  There is no retrying state: callers that want
retries re-invoke the engine.
"""

from __future__ import annotations

from typing import Any

from transitions.extensions.asyncio import AsyncMachine, AsyncState

STATES: list[AsyncState] = [
    AsyncState("not_started"),
    AsyncState("running"),
    AsyncState("completed"),
    AsyncState("configuration_error"),
]

TRANSITIONS: list[dict[str, Any]] = [
    {
        "trigger": "start",
        "source": "not_started",
        "dest": "running",
        "conditions": ["is_configured"],
    },
    {
        "trigger": "reject",
        "source": "not_started",
        "dest": "configuration_error",
    },
    {
        "trigger": "finish",
        "source": "running",
        "dest": "completed",
    },
]

TERMINAL_STATES: frozenset[str] = frozenset({"completed", "configuration_error"})


def create_run_machine(model: Any, initial_state: str = "not_started") -> AsyncMachine:
    """Create and return an ``AsyncMachine`` bound to *model*.

    The model must implement ``is_configured(event)`` returning a bool.

    Args:
        model: The object whose state the machine manages.
        initial_state: The initial state for the machine.

    Returns:
        Configured ``AsyncMachine`` instance.
    """
    return AsyncMachine(
        model=model,
        states=STATES,
        transitions=TRANSITIONS,
        initial=initial_state,
        auto_transitions=False,
        send_event=True,
        queued=True,
        ignore_invalid_triggers=True,
    )
