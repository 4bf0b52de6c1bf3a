# src/core/runtime.py — v1
"""Agent execution core — retry, timeout, metrics and lifecycle events.

AgentRuntime wraps one BaseAgent. ``execute_with_retry`` never raises: every
failure, including timeouts and exceptions from the agent, is encoded in the
returned AgentResponse.

State machine:
    idle -(start)-> running -(success)-> idle
    running -(failure)-> error -(next start)-> running
    any -(shutdown)-> shutdown   (terminal)
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from agentengine.core.events import (
    AgentEvent,
    EventListeners,
    ExecutionStarted,
    Listener,
)
from agentengine.core.models import (
    MAX_ERROR_LOG,
    AgentConfig,
    AgentMetrics,
    AgentResponse,
    AgentStatus,
    ExecutionContext,
)
from agentengine.logging.context import attempt_scope

if TYPE_CHECKING:
    from agentengine.agents.base_agent import BaseAgent

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[Any]]


class AgentRuntime:
    """Lifecycle wrapper around a single agent instance.

    Args:
        agent_id: Identity of the agent within its engine.
        agent: The concrete agent doing the work.
        type_name: Registered type name the agent was created from.
        sleep: Awaitable used for backoff delays (seconds).
    """

    def __init__(
        self,
        agent_id: str,
        agent: BaseAgent,
        type_name: str = "",
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._agent_id = agent_id
        self._agent = agent
        self._type_name = type_name
        self._sleep = sleep
        self._status = AgentStatus.IDLE
        self._metrics = AgentMetrics()
        self._total_execution_time_ms = 0
        self._successful_executions = 0
        self._events = EventListeners()
        # Timed-out executions still in flight; referenced so they are not
        # garbage collected before they settle.
        self._abandoned: set[asyncio.Task[Any]] = set()

    # --- Identity and state ---

    @property
    def agent_id(self) -> str:
        return self._agent_id

    @property
    def type_name(self) -> str:
        return self._type_name

    @property
    def agent(self) -> BaseAgent:
        """The wrapped agent instance."""
        return self._agent

    @property
    def status(self) -> AgentStatus:
        return self._status

    @property
    def metrics(self) -> AgentMetrics:
        """Copy of the current metrics."""
        return self._metrics.model_copy(deep=True)

    @property
    def config(self) -> AgentConfig:
        return self._agent.config

    @property
    def settings(self) -> dict[str, Any]:
        return self._agent.settings

    @property
    def abandoned_count(self) -> int:
        """Number of timed-out executions that have not settled yet."""
        return len(self._abandoned)

    def update_settings(self, new_settings: dict[str, Any]) -> None:
        self._agent.update_settings(new_settings)

    def update_config(self, updates: dict[str, Any]) -> None:
        self._agent.update_config(updates)

    def reset_metrics(self) -> None:
        self._metrics = AgentMetrics()
        self._total_execution_time_ms = 0
        self._successful_executions = 0

    # --- Events ---

    def on(self, event: AgentEvent | str, listener: Listener) -> None:
        self._events.on(event, listener)

    def off(self, event: AgentEvent | str, listener: Listener) -> bool:
        return self._events.off(event, listener)

    def listener_count(self, event: AgentEvent | str | None = None) -> int:
        return self._events.count(event)

    # --- Lifecycle ---

    async def shutdown(self) -> None:
        """Move to the terminal status and release listeners.

        An execution already in progress is not interrupted.
        """
        if self._status is AgentStatus.SHUTDOWN:
            return
        self._status = AgentStatus.SHUTDOWN
        self._events.clear()
        self._agent.shutdown()
        logger.debug("Agent '%s' shut down", self._agent_id)

    # --- Execution ---

    async def execute_with_retry(
        self,
        input_data: Any,
        context: ExecutionContext | dict[str, Any] | None = None,
    ) -> AgentResponse:
        """Run the agent until it succeeds or the retry budget is spent.

        Attempt ``k`` (0-based) that fails is followed by a backoff of
        ``backoff_ms * 2**k`` unless it was the last allowed attempt.
        """
        policy = self._agent.retry_policy
        attempts = policy.max_retries + 1
        last_error: str | None = None

        for attempt in range(attempts):
            response = await self._execute_attempt(input_data, context, attempt)
            if response.success:
                return response

            last_error = response.error
            if attempt < policy.max_retries:
                delay_ms = policy.backoff_ms * (2 ** attempt)
                logger.warning(
                    "Agent '%s' failed (attempt %d/%d): %s, retrying in %dms",
                    self._agent_id, attempt + 1, attempts, last_error, delay_ms,
                )
                await self._sleep(delay_ms / 1000)

        logger.error(
            "Agent '%s' failed after %d attempts: %s",
            self._agent_id, attempts, last_error,
        )
        return AgentResponse(
            success=False,
            error=f"Failed after {attempts} attempts. Last error: {last_error}",
            execution_time_ms=0,
        )

    async def _execute_attempt(
        self,
        input_data: Any,
        context: ExecutionContext | dict[str, Any] | None,
        attempt: int,
    ) -> AgentResponse:
        """One attempt: run, measure, update metrics, emit the outcome."""
        start = time.monotonic()
        self._set_status(AgentStatus.RUNNING)

        execution_context = self._build_context(context)
        with attempt_scope(execution_context.session_id, attempt):
            return await self._run_attempt(input_data, execution_context, attempt, start)

    async def _run_attempt(
        self,
        input_data: Any,
        execution_context: ExecutionContext,
        attempt: int,
        start: float,
    ) -> AgentResponse:
        self._events.emit(
            AgentEvent.EXECUTION_START,
            ExecutionStarted(input=input_data, context=execution_context),
        )

        try:
            result = _normalize(await self._run_with_deadline(input_data, execution_context))
            error = result.error
        except Exception as exc:
            result = None
            error = str(exc) or type(exc).__name__

        elapsed_ms = int((time.monotonic() - start) * 1000)

        if result is not None and result.success:
            response = result.model_copy(update={"execution_time_ms": elapsed_ms})
            self._update_metrics(response)
            self._set_status(AgentStatus.IDLE)
            self._events.emit(AgentEvent.EXECUTION_COMPLETE, response)
            logger.debug("Agent '%s' attempt %d succeeded in %dms",
                         self._agent_id, attempt + 1, elapsed_ms)
            return response

        response = AgentResponse(
            success=False,
            data=result.data if result is not None else None,
            error=error or "Unknown error",
            execution_time_ms=elapsed_ms,
        )
        self._update_metrics(response)
        self._set_status(AgentStatus.ERROR)
        self._events.emit(AgentEvent.EXECUTION_ERROR, response)
        return response

    async def _run_with_deadline(
        self, input_data: Any, context: ExecutionContext
    ) -> Any:
        """Race the agent against ``max_execution_time_ms`` when configured.

        On timeout the caller is released immediately. The losing execution
        is asked to cancel when ``cancel_on_timeout`` is set, otherwise it is
        left to run to completion in the background.
        """
        timeout_ms = self._agent.max_execution_time_ms
        if not timeout_ms:
            return await self._agent.execute(input_data, context)

        task = asyncio.ensure_future(self._agent.execute(input_data, context))
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task in done:
            return task.result()

        self._abandon(task)
        raise TimeoutError(f"Execution timeout after {timeout_ms}ms")

    def _abandon(self, task: asyncio.Task[Any]) -> None:
        self._abandoned.add(task)
        task.add_done_callback(self._reap)
        if self._agent.cancel_on_timeout:
            task.cancel()
        else:
            logger.info(
                "Agent '%s' timed out; execution continues in background",
                self._agent_id,
            )

    def _reap(self, task: asyncio.Task[Any]) -> None:
        self._abandoned.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(
                "Abandoned execution of '%s' finished with: %s",
                self._agent_id, task.exception(),
            )

    def _update_metrics(self, response: AgentResponse) -> None:
        """Fold one attempt into the metrics. Runs before its event fires."""
        m = self._metrics
        m.executions_count += 1
        self._total_execution_time_ms += response.execution_time_ms
        m.average_execution_time_ms = self._total_execution_time_ms / m.executions_count
        m.last_execution = datetime.now(timezone.utc)

        if response.success:
            self._successful_executions += 1
        elif response.error:
            m.errors.append(response.error)
            if len(m.errors) > MAX_ERROR_LOG:
                m.errors = m.errors[-MAX_ERROR_LOG:]

        m.success_rate = (self._successful_executions / m.executions_count) * 100

    def _set_status(self, status: AgentStatus) -> None:
        # No transition leaves shutdown
        if self._status is not AgentStatus.SHUTDOWN:
            self._status = status

    def _build_context(
        self, context: ExecutionContext | dict[str, Any] | None
    ) -> ExecutionContext:
        if isinstance(context, ExecutionContext):
            data = context.model_dump()
        else:
            data = dict(context or {})
        data["session_id"] = data.get("session_id") or _generate_session_id()
        data["timestamp"] = datetime.now(timezone.utc).isoformat()
        return ExecutionContext.model_validate(data)

    def __repr__(self) -> str:
        return (
            f"AgentRuntime(id={self._agent_id!r}, type={self._type_name!r}, "
            f"status={self._status.value!r})"
        )


def _normalize(result: Any) -> AgentResponse:
    """Coerce whatever the agent returned into an AgentResponse."""
    if isinstance(result, AgentResponse):
        return result
    if isinstance(result, dict):
        return AgentResponse.model_validate(result)
    raise TypeError(
        f"Agent returned {type(result).__name__}, expected AgentResponse"
    )


def _generate_session_id() -> str:
    return f"session-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"
