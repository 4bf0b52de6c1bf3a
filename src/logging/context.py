# src/logging/context.py — v1
"""Execution-scoped logging context.

The engine opens an ``execution_scope`` per dispatch and the runtime an
``attempt_scope`` per attempt. Both restore the previous values on exit, so
records logged after a dispatch returns carry no stale ids.
"""

from __future__ import annotations

import contextvars
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Any

_agent_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "agent_id", default=None
)
_execution_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "execution_id", default=None
)
_session_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "session_id", default=None
)
_attempt: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "attempt", default=None
)

CONTEXT_FIELDS = ("agent_id", "execution_id", "session_id", "attempt")


@dataclass(frozen=True)
class LogContext:
    """Snapshot of the ids active for the current task."""

    agent_id: str | None = None
    execution_id: str | None = None
    session_id: str | None = None
    attempt: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Set fields only."""
        return {k: v for k, v in asdict(self).items() if v is not None}


def get_context() -> LogContext:
    return LogContext(
        agent_id=_agent_id.get(),
        execution_id=_execution_id.get(),
        session_id=_session_id.get(),
        attempt=_attempt.get(),
    )


@contextmanager
def execution_scope(agent_id: str, execution_id: str | None = None) -> Iterator[None]:
    """Bind dispatch ids for the duration of one ``execute_agent`` call."""
    agent_token = _agent_id.set(agent_id)
    execution_token = _execution_id.set(execution_id)
    try:
        yield
    finally:
        _execution_id.reset(execution_token)
        _agent_id.reset(agent_token)


@contextmanager
def attempt_scope(session_id: str | None, attempt: int) -> Iterator[None]:
    """Bind the session id and 0-based attempt number for one attempt."""
    session_token = _session_id.set(session_id)
    attempt_token = _attempt.set(attempt)
    try:
        yield
    finally:
        _attempt.reset(attempt_token)
        _session_id.reset(session_token)
