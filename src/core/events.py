# src/core/events.py — v1
"""Agent lifecycle events and per-agent listener sets.

Each AgentRuntime owns one EventListeners instance. The engine subscribes to
it when the agent is created; shutting the agent down clears it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Union

from agentengine.core.models import AgentResponse, ExecutionContext

logger = logging.getLogger(__name__)


class AgentEvent(str, Enum):
    """Lifecycle events fired once per attempt."""

    EXECUTION_START = "execution-start"
    EXECUTION_COMPLETE = "execution-complete"
    EXECUTION_ERROR = "execution-error"


@dataclass(frozen=True)
class ExecutionStarted:
    """Payload of ``execution-start``."""

    input: Any
    context: ExecutionContext


EventPayload = Union[ExecutionStarted, AgentResponse]
Listener = Callable[..., None]


class EventListeners:
    """Ordered listener lists keyed by AgentEvent."""

    def __init__(self) -> None:
        self._listeners: dict[AgentEvent, list[Listener]] = {
            event: [] for event in AgentEvent
        }

    def on(self, event: AgentEvent | str, listener: Listener) -> None:
        """Subscribe ``listener`` to ``event``."""
        self._listeners[AgentEvent(event)].append(listener)

    def off(self, event: AgentEvent | str, listener: Listener) -> bool:
        """Unsubscribe ``listener``. Returns False if it was not subscribed."""
        listeners = self._listeners[AgentEvent(event)]
        if listener not in listeners:
            return False
        listeners.remove(listener)
        return True

    def emit(self, event: AgentEvent, *args: Any) -> None:
        """Call every listener of ``event`` in order with ``args``.

        A failing listener is logged and skipped; it never aborts the
        execution that emitted the event.
        """
        for listener in list(self._listeners[event]):
            try:
                listener(*args)
            except Exception as exc:
                logger.warning(
                    "Listener for '%s' raised: %s", event.value, exc,
                )

    def count(self, event: AgentEvent | str | None = None) -> int:
        """Number of listeners for one event, or for all events."""
        if event is not None:
            return len(self._listeners[AgentEvent(event)])
        return sum(len(v) for v in self._listeners.values())

    def clear(self) -> None:
        """Drop every listener."""
        for listeners in self._listeners.values():
            listeners.clear()
