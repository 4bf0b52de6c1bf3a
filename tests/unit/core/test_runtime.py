# tests/unit/core/test_runtime.py — v1
"""Tests for core/runtime.py — retry, backoff, timeout, metrics, events."""

from __future__ import annotations

import asyncio

import pytest

from agentengine.core.events import AgentEvent, ExecutionStarted
from agentengine.core.models import AgentResponse, AgentStatus, ExecutionContext
from agentengine.core.runtime import AgentRuntime
from conftest import ALWAYS, EchoAgent, FlakyAgent, RecordingSleeper, make_config


def _runtime(
    sleeper: RecordingSleeper,
    max_retries: int = 2,
    backoff_ms: int = 10,
    agent_cls=FlakyAgent,
    **config_kwargs,
) -> AgentRuntime:
    config = make_config(max_retries=max_retries, backoff_ms=backoff_ms, **config_kwargs)
    return AgentRuntime("a1", agent_cls(config), type_name="flaky", sleep=sleeper)


class TestRetry:
    @pytest.mark.asyncio
    async def test_success_first_attempt(self, sleeper):
        rt = _runtime(sleeper)
        response = await rt.execute_with_retry({"x": 1})

        assert response.success is True
        assert response.data == {"echo": {"x": 1}, "call": 1}
        assert response.execution_time_ms >= 0
        assert rt.agent.calls == 1
        assert rt.status is AgentStatus.IDLE
        assert sleeper.delays == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_retries", [0, 1, 3])
    async def test_permanent_failure_attempt_count(self, sleeper, max_retries):
        rt = _runtime(sleeper, max_retries=max_retries, settings={"failures": ALWAYS})
        response = await rt.execute_with_retry({})

        attempts = max_retries + 1
        assert rt.agent.calls == attempts
        assert response.success is False
        assert response.error == (
            f"Failed after {attempts} attempts. Last error: failure {attempts}"
        )
        assert response.execution_time_ms == 0
        assert rt.status is AgentStatus.ERROR

    @pytest.mark.asyncio
    async def test_exponential_backoff_delays(self, sleeper):
        rt = _runtime(sleeper, max_retries=3, backoff_ms=10, settings={"failures": ALWAYS})
        await rt.execute_with_retry({})

        assert sleeper.delays == pytest.approx([0.01, 0.02, 0.04])

    @pytest.mark.asyncio
    async def test_no_sleep_after_final_attempt(self, sleeper):
        rt = _runtime(sleeper, max_retries=0, settings={"failures": ALWAYS})
        await rt.execute_with_retry({})
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_failures(self, sleeper):
        rt = _runtime(sleeper, max_retries=2, settings={"failures": 2})
        response = await rt.execute_with_retry({})

        assert response.success is True
        assert response.data["call"] == 3
        assert rt.status is AgentStatus.IDLE
        metrics = rt.metrics
        assert metrics.executions_count == 3
        assert metrics.success_rate == pytest.approx(100 / 3)
        assert metrics.errors == ["failure 1", "failure 2"]

    @pytest.mark.asyncio
    async def test_raised_exception_becomes_failure(self, sleeper):
        rt = _runtime(sleeper, max_retries=1, settings={"failures": ALWAYS, "raise": True})
        response = await rt.execute_with_retry({})

        assert response.success is False
        assert response.error.endswith("Last error: boom 2")
        assert rt.metrics.errors == ["boom 1", "boom 2"]

    def test_default_retry_policy(self):
        agent = FlakyAgent(make_config().model_copy(update={"retry_policy": None}))
        assert agent.retry_policy.max_retries == 2
        assert agent.retry_policy.backoff_ms == 1000


class TestTimeout:
    @pytest.mark.asyncio
    async def test_timeout_is_a_failure(self, sleeper):
        rt = _runtime(
            sleeper, max_retries=0, max_execution_time_ms=20,
            settings={"delay_s": 0.5},
        )
        response = await rt.execute_with_retry({})

        assert response.success is False
        assert "Execution timeout after 20ms" in response.error
        assert rt.metrics.errors == ["Execution timeout after 20ms"]

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, sleeper):
        rt = _runtime(
            sleeper, max_retries=1, max_execution_time_ms=20,
            settings={"delay_s": 0.5},
        )
        response = await rt.execute_with_retry({})

        assert rt.agent.calls == 2
        assert response.error.startswith("Failed after 2 attempts")

    @pytest.mark.asyncio
    async def test_timed_out_execution_is_cancelled(self, sleeper):
        rt = _runtime(
            sleeper, max_retries=0, max_execution_time_ms=20,
            settings={"delay_s": 0.2},
        )
        await rt.execute_with_retry({})
        await asyncio.sleep(0.01)

        assert rt.abandoned_count == 0
        assert rt.agent.completed == 0

    @pytest.mark.asyncio
    async def test_timed_out_execution_keeps_running_when_not_cancelled(self, sleeper):
        rt = _runtime(
            sleeper, max_retries=0, max_execution_time_ms=20,
            cancel_on_timeout=False, settings={"delay_s": 0.1},
        )
        response = await rt.execute_with_retry({})

        assert response.success is False
        assert rt.abandoned_count == 1
        await asyncio.sleep(0.2)
        assert rt.agent.completed == 1
        assert rt.abandoned_count == 0

    @pytest.mark.asyncio
    async def test_fast_execution_within_deadline(self, sleeper):
        rt = _runtime(sleeper, max_execution_time_ms=1000)
        response = await rt.execute_with_retry({"y": 2})
        assert response.success is True


class TestMetrics:
    def test_initial_metrics(self, sleeper):
        rt = _runtime(sleeper)
        m = rt.metrics
        assert m.executions_count == 0
        assert m.success_rate == 0
        assert m.average_execution_time_ms == 0
        assert m.last_execution is None

    @pytest.mark.asyncio
    async def test_counts_every_attempt(self, sleeper):
        rt = _runtime(sleeper, max_retries=2, settings={"failures": 1})
        await rt.execute_with_retry({})
        await rt.execute_with_retry({})

        # first call: fail + success, second call: success
        assert rt.metrics.executions_count == 3
        assert rt.metrics.success_rate == pytest.approx(200 / 3)
        assert rt.metrics.last_execution is not None

    @pytest.mark.asyncio
    async def test_error_log_is_bounded(self, sleeper):
        rt = _runtime(sleeper, max_retries=14, backoff_ms=0, settings={"failures": ALWAYS})
        await rt.execute_with_retry({})

        errors = rt.metrics.errors
        assert len(errors) == 10
        assert errors[0] == "failure 6"
        assert errors[-1] == "failure 15"

    @pytest.mark.asyncio
    async def test_reset_metrics(self, sleeper):
        rt = _runtime(sleeper, settings={"failures": 1})
        await rt.execute_with_retry({})
        rt.reset_metrics()

        assert rt.metrics.executions_count == 0
        assert rt.metrics.errors == []
        await rt.execute_with_retry({})
        assert rt.metrics.success_rate == 100

    @pytest.mark.asyncio
    async def test_metrics_copy_is_detached(self, sleeper):
        rt = _runtime(sleeper, settings={"failures": 1})
        await rt.execute_with_retry({})
        snapshot = rt.metrics
        snapshot.errors.append("tampered")
        assert "tampered" not in rt.metrics.errors


class TestEvents:
    @pytest.mark.asyncio
    async def test_event_order_per_attempt(self, sleeper):
        rt = _runtime(sleeper, max_retries=1, settings={"failures": 1})
        seen: list[str] = []
        for event in AgentEvent:
            rt.on(event, lambda payload, e=event: seen.append(e.value))

        await rt.execute_with_retry({})

        assert seen == [
            "execution-start", "execution-error",
            "execution-start", "execution-complete",
        ]

    @pytest.mark.asyncio
    async def test_metrics_updated_before_event(self, sleeper):
        rt = _runtime(sleeper)
        observed: list[int] = []
        rt.on(
            AgentEvent.EXECUTION_COMPLETE,
            lambda payload: observed.append(rt.metrics.executions_count),
        )
        await rt.execute_with_retry({})
        assert observed == [1]

    @pytest.mark.asyncio
    async def test_start_payload_and_response_payload(self, sleeper):
        rt = _runtime(sleeper)
        payloads: list[object] = []
        rt.on("execution-start", payloads.append)
        rt.on("execution-complete", payloads.append)

        response = await rt.execute_with_retry({"q": 1}, {"user_id": "u1"})

        start, complete = payloads
        assert isinstance(start, ExecutionStarted)
        assert start.input == {"q": 1}
        assert start.context.user_id == "u1"
        assert complete == response

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_execution(self, sleeper):
        rt = _runtime(sleeper)

        def bad_listener(payload):
            raise RuntimeError("listener bug")

        rt.on(AgentEvent.EXECUTION_START, bad_listener)
        response = await rt.execute_with_retry({})
        assert response.success is True


class TestContext:
    @pytest.mark.asyncio
    async def test_session_and_timestamp_generated(self, sleeper):
        rt = _runtime(sleeper)
        await rt.execute_with_retry({})
        ctx = rt.agent.contexts[0]
        assert ctx.session_id.startswith("session-")
        assert ctx.timestamp is not None

    @pytest.mark.asyncio
    async def test_supplied_session_and_extras_kept(self, sleeper):
        rt = _runtime(sleeper)
        await rt.execute_with_retry(
            {}, ExecutionContext(session_id="s-1", environment="test", tenant="acme"),
        )
        ctx = rt.agent.contexts[0]
        assert ctx.session_id == "s-1"
        assert ctx.environment == "test"
        assert ctx.model_extra["tenant"] == "acme"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_shutdown_is_terminal_and_clears_listeners(self, sleeper):
        rt = _runtime(sleeper)
        rt.on(AgentEvent.EXECUTION_START, lambda p: None)
        await rt.shutdown()

        assert rt.status is AgentStatus.SHUTDOWN
        assert rt.listener_count() == 0
        await rt.execute_with_retry({})
        assert rt.status is AgentStatus.SHUTDOWN

    @pytest.mark.asyncio
    async def test_dict_result_is_normalized(self, sleeper):
        class DictAgent(EchoAgent):
            async def execute(self, input_data, context):
                return {"success": True, "data": "ok"}

        rt = _runtime(sleeper, agent_cls=DictAgent)
        response = await rt.execute_with_retry({})
        assert isinstance(response, AgentResponse)
        assert response.data == "ok"

    @pytest.mark.asyncio
    async def test_invalid_result_is_failure(self, sleeper):
        class BadAgent(EchoAgent):
            async def execute(self, input_data, context):
                return 42

        rt = _runtime(sleeper, max_retries=0, agent_cls=BadAgent)
        response = await rt.execute_with_retry({})
        assert response.success is False
        assert "expected AgentResponse" in response.error

    def test_settings_and_config_updates(self, sleeper):
        rt = _runtime(sleeper, settings={"failures": 0})
        rt.update_settings({"failures": 3})
        assert rt.settings["failures"] == 3
        rt.update_config({"description": "updated", "settings": {"delay_s": 0.0}})
        assert rt.config.description == "updated"
        assert rt.settings["failures"] == 3
