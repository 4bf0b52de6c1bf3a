# src/agents/base_agent.py — v1
"""Minimal "do the work" contract for concrete agent kinds.

Retry, timeout, metrics and lifecycle events are not handled here: they are
composed around a BaseAgent by ``agentengine.core.runtime.AgentRuntime``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from agentengine.core.models import (
    AgentConfig,
    AgentResponse,
    ExecutionContext,
    RetryPolicy,
)


class BaseAgent(ABC):
    """Standard interface for all agent kinds.

    Subclasses are registered on the engine under a type name and are
    instantiated with a single ``AgentConfig`` argument.
    """

    def __init__(self, config: AgentConfig) -> None:
        self._config = config.model_copy(deep=True)
        self._config.settings = {**self.default_settings(), **self._config.settings}
        self.validate_settings(self._config.settings)
        if self._config.retry_policy is None:
            self._config.retry_policy = RetryPolicy()

    @abstractmethod
    async def execute(
        self, input_data: Any, context: ExecutionContext
    ) -> AgentResponse:
        """Perform one unit of work.

        Validation problems and expected failures should be returned as a
        failed AgentResponse; unexpected exceptions may propagate and are
        converted by the runtime.
        """

    def default_settings(self) -> dict[str, Any]:
        """Settings merged under the caller-supplied ones at construction."""
        return {}

    def validate_settings(self, new_settings: dict[str, Any]) -> None:
        """Raise ValueError if ``new_settings`` is not acceptable.

        Override for agent-specific validation.
        """

    @property
    def config(self) -> AgentConfig:
        """Copy of the current configuration."""
        return self._config.model_copy(deep=True)

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._config.retry_policy or RetryPolicy()

    @property
    def max_execution_time_ms(self) -> int | None:
        return self._config.max_execution_time_ms

    @property
    def cancel_on_timeout(self) -> bool:
        return self._config.cancel_on_timeout

    @property
    def settings(self) -> dict[str, Any]:
        """Copy of the current settings."""
        return dict(self._config.settings)

    def update_settings(self, new_settings: dict[str, Any]) -> None:
        """Merge ``new_settings`` over the current settings."""
        self.validate_settings(new_settings)
        self._config.settings = {**self._config.settings, **new_settings}

    def update_config(self, updates: dict[str, Any]) -> None:
        """Apply a partial configuration update.

        ``settings`` in ``updates`` are merged rather than replacing the
        current mapping.
        """
        updates = dict(updates)
        new_settings = updates.pop("settings", None)
        if updates:
            merged = {**self._config.model_dump(), **updates}
            current_settings = self._config.settings
            self._config = AgentConfig.model_validate(merged)
            self._config.settings = current_settings
            if self._config.retry_policy is None:
                self._config.retry_policy = RetryPolicy()
        if new_settings:
            self.update_settings(new_settings)

    def shutdown(self) -> None:
        """Release agent-held resources. Called once by the runtime."""
