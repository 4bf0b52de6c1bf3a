# src/plugins/base_plugin.py — v1
"""Plugin hook contract.

A plugin observes and transforms dispatched executions through three hooks,
each with a pass-through default:

    before_execution(input, context) -> input'
    after_execution(response, context) -> response'
    on_error(error, context) -> None

A plugin is effectively enabled only when it is both explicitly enabled and
initialized. Disabled plugins must return their inputs unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, TypeVar

from agentengine.core.errors import PluginConfigError
from agentengine.plugins.models import PluginContext, PluginMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Marker keys a hook may add to a dict input. The engine moves every
# ``__``-prefixed key off the input and into the PluginContext annotations before
# the agent runs.
MARKER_PREFIX = "__"
CACHED_MARKER = "__cached"
CACHE_KEY_MARKER = "__cache_key"
CACHED_RESPONSE_MARKER = "__cached_response"


class BasePlugin:
    """Base class for all plugins."""

    def __init__(self, metadata: PluginMetadata) -> None:
        self._metadata = metadata.model_copy(deep=True)
        self._enabled = True
        self._initialized = False

    # --- Lifecycle ---

    async def init(self) -> None:
        """Run ``on_init`` once. No-op when already initialized."""
        if self._initialized:
            return
        await self.on_init()
        self._initialized = True
        logger.debug("Plugin %s v%s initialized", self.name, self.version)

    async def destroy(self) -> None:
        """Run ``on_destroy`` once. No-op when not initialized."""
        if not self._initialized:
            return
        await self.on_destroy()
        self._initialized = False
        logger.debug("Plugin %s destroyed", self.name)

    async def on_init(self) -> None:
        """Setup hook, override in subclasses."""

    async def on_destroy(self) -> None:
        """Teardown hook, override in subclasses."""

    # --- Control ---

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def is_enabled(self) -> bool:
        return self._enabled and self._initialized

    def is_initialized(self) -> bool:
        return self._initialized

    # --- Metadata ---

    @property
    def metadata(self) -> PluginMetadata:
        return self._metadata.model_copy(deep=True)

    @property
    def name(self) -> str:
        return self._metadata.name

    @property
    def version(self) -> str:
        return self._metadata.version

    @property
    def description(self) -> str | None:
        return self._metadata.description

    # --- Hooks ---

    async def before_execution(self, input_data: Any, context: PluginContext) -> Any:
        return input_data

    async def after_execution(self, response: Any, context: PluginContext) -> Any:
        return response

    async def on_error(self, error: Exception, context: PluginContext) -> None:
        return None

    # --- Helpers ---

    def validate_config(self, config: Any, required_fields: list[str]) -> None:
        """Check that ``config`` is a mapping holding every required field.

        Raises:
            PluginConfigError: On a non-mapping config or a missing field.
        """
        if not isinstance(config, dict):
            raise PluginConfigError(f"Plugin {self.name}: Invalid configuration object")
        for field in required_fields:
            if field not in config:
                raise PluginConfigError(
                    f"Plugin {self.name}: Missing required configuration field: {field}"
                )

    async def safe_execute(
        self,
        operation: Callable[[], Awaitable[T]],
        fallback: T,
        error_message: str | None = None,
    ) -> T:
        """Await ``operation``; on any exception log a warning and return ``fallback``."""
        try:
            return await operation()
        except Exception as exc:
            logger.warning(
                "Plugin %s: %s: %s",
                self.name, error_message or "Operation failed", exc,
            )
            return fallback

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, enabled={self.is_enabled()})"
