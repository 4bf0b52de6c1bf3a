# tests/conftest.py — v1
"""Shared test fixtures for unit and integration tests.

Provides stub agents, a recording backoff sleeper, a fake clock and a
pre-populated engine. No real delays unless a test asks for them.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from agentengine.agents.base_agent import BaseAgent
from agentengine.core.engine import AgentEngine
from agentengine.core.models import (
    AgentConfig,
    AgentResponse,
    ExecutionContext,
    RetryPolicy,
)

ALWAYS = 10**6


# === Stub agents ===


class EchoAgent(BaseAgent):
    """Returns its input as data."""

    async def execute(self, input_data: Any, context: ExecutionContext) -> AgentResponse:
        return AgentResponse(success=True, data=input_data)


class FlakyAgent(BaseAgent):
    """Fails the first ``failures`` calls, then succeeds.

    Settings:
        failures: number of leading failed calls.
        raise: raise RuntimeError instead of returning a failed response.
        delay_s: simulated work before the outcome.
    """

    def __init__(self, config: AgentConfig) -> None:
        super().__init__(config)
        self.calls = 0
        self.completed = 0
        self.inputs: list[Any] = []
        self.contexts: list[ExecutionContext] = []

    def default_settings(self) -> dict[str, Any]:
        return {"failures": 0, "raise": False, "delay_s": 0.0}

    async def execute(self, input_data: Any, context: ExecutionContext) -> AgentResponse:
        self.calls += 1
        call = self.calls
        self.inputs.append(input_data)
        self.contexts.append(context)
        settings = self._config.settings
        if settings["delay_s"]:
            await asyncio.sleep(settings["delay_s"])
        self.completed += 1
        if call <= settings["failures"]:
            if settings["raise"]:
                raise RuntimeError(f"boom {call}")
            return AgentResponse(success=False, error=f"failure {call}")
        return AgentResponse(success=True, data={"echo": input_data, "call": call})


class BrokenAgent(BaseAgent):
    """Raises from its constructor."""

    def __init__(self, config: AgentConfig) -> None:
        raise ValueError("bad config")

    async def execute(self, input_data: Any, context: ExecutionContext) -> AgentResponse:
        raise NotImplementedError


# === Time helpers ===


class RecordingSleeper:
    """Backoff sleeper that records delays (seconds) without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# === Fixtures ===


def make_config(
    max_retries: int = 2,
    backoff_ms: int = 10,
    **kwargs: Any,
) -> AgentConfig:
    return AgentConfig(
        name=kwargs.pop("name", "test-agent"),
        retry_policy=RetryPolicy(max_retries=max_retries, backoff_ms=backoff_ms),
        **kwargs,
    )


@pytest.fixture
def agent_config() -> AgentConfig:
    """Minimal config with a fast retry policy."""
    return make_config()


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(sleeper: RecordingSleeper) -> AgentEngine:
    """Engine with ``echo`` and ``flaky`` registered and a recording sleeper."""
    eng = AgentEngine(sleep=sleeper)
    eng.register_agent_type("echo", EchoAgent)
    eng.register_agent_type("flaky", FlakyAgent)
    return eng
