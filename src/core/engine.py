# src/core/engine.py — v1
"""Agent engine — registry of agent types and live agents, and dispatcher.

The engine owns two registries:
  - agent types: name -> BaseAgent subclass, permanent (no re-registration)
  - agents: agent_id -> AgentRuntime, until removed or engine shutdown

Registry errors (duplicate/unknown type, duplicate/missing id, shutdown
agent) are raised to the caller. Everything that goes wrong while an agent
runs is returned as a failed AgentResponse.

Plugins registered on the engine wrap every dispatch:

    before_execution hooks -> agent (skipped on cache hit) -> after_execution
    hooks -> on_error hooks when the final response failed
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import uuid
from functools import partial
from typing import TYPE_CHECKING, Any, Callable

from agentengine.agents.base_agent import BaseAgent
from agentengine.config.agents import BUILTIN_AGENT_TYPES
from agentengine.core.errors import (
    AgentExecutionError,
    AgentNotFoundError,
    AgentShutdownError,
    ConstructionError,
    DuplicateIdError,
    DuplicatePluginError,
    DuplicateTypeError,
    RegistryError,
    UnknownTypeError,
)
from agentengine.core.events import AgentEvent, EventListeners, EventPayload
from agentengine.core.models import (
    AgentConfig,
    AgentInfo,
    AgentResponse,
    AgentStatus,
    EngineStats,
    ExecutionContext,
    RetryPolicy,
)
from agentengine.core.runtime import AgentRuntime, Sleeper
from agentengine.logging.context import execution_scope
from agentengine.plugins.base_plugin import (
    CACHED_MARKER,
    CACHED_RESPONSE_MARKER,
    MARKER_PREFIX,
    BasePlugin,
)
from agentengine.plugins.models import PluginContext

if TYPE_CHECKING:
    from agentengine.config.settings import Settings
    from agentengine.plugins.cache import CachePlugin

logger = logging.getLogger(__name__)

EngineListener = Callable[[str, EventPayload], None]


class AgentEngine:
    """Registry and dispatcher for agents.

    Args:
        settings: Optional settings supplying defaults for configs that leave
            retry policy, timeout or cancellation unset.
        sleep: Backoff sleeper handed to every AgentRuntime.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._sleep = sleep
        self._agent_types: dict[str, type[BaseAgent]] = {}
        self._agents: dict[str, AgentRuntime] = {}
        self._plugins: list[BasePlugin] = []
        self._listeners = EventListeners()
        self._total_executions = 0

    # --- Agent types ---

    def register_agent_type(self, type_name: str, agent_cls: type[BaseAgent]) -> None:
        """Register ``agent_cls`` under ``type_name``.

        Raises:
            DuplicateTypeError: If the name is already taken.
        """
        if type_name in self._agent_types:
            raise DuplicateTypeError(type_name)
        self._agent_types[type_name] = agent_cls
        logger.debug("Registered agent type '%s' -> %s", type_name, agent_cls.__name__)

    def load_agent_types(self, class_paths: dict[str, str] | None = None) -> list[str]:
        """Register agent types from dotted class paths.

        Args:
            class_paths: type name -> class path. Defaults to the built-in types.

        Returns:
            Names registered by this call, in order.

        Raises:
            RegistryError: If a class cannot be imported or is not a BaseAgent.
        """
        loaded: list[str] = []
        for type_name, class_path in (class_paths or BUILTIN_AGENT_TYPES).items():
            self.register_agent_type(type_name, _import_agent_class(class_path))
            loaded.append(type_name)
        logger.info("Loaded %d agent types: %s", len(loaded), ", ".join(loaded))
        return loaded

    @property
    def available_types(self) -> list[str]:
        """Registered type names in registration order."""
        return list(self._agent_types)

    def is_agent_type_registered(self, type_name: str) -> bool:
        return type_name in self._agent_types

    # --- Agents ---

    async def create_agent(
        self, agent_id: str, type_name: str, config: AgentConfig
    ) -> AgentRuntime:
        """Instantiate an agent of ``type_name`` and start tracking it.

        Raises:
            DuplicateIdError: If ``agent_id`` is live.
            UnknownTypeError: If ``type_name`` is not registered.
            ConstructionError: If the agent class raised.
        """
        if agent_id in self._agents:
            raise DuplicateIdError(agent_id)

        agent_cls = self._agent_types.get(type_name)
        if agent_cls is None:
            raise UnknownTypeError(type_name)

        try:
            agent = agent_cls(self._apply_defaults(config))
        except Exception as exc:
            raise ConstructionError(type_name, exc) from exc

        runtime = AgentRuntime(agent_id, agent, type_name=type_name, sleep=self._sleep)
        self._agents[agent_id] = runtime
        self._setup_event_forwarding(runtime)

        logger.info("Created agent '%s' of type '%s'", agent_id, type_name)
        return runtime

    def get_agent(self, agent_id: str) -> AgentRuntime | None:
        return self._agents.get(agent_id)

    def get_all_agents(self) -> dict[str, AgentRuntime]:
        return dict(self._agents)

    async def remove_agent(self, agent_id: str) -> bool:
        """Shut an agent down and forget it. False if it did not exist."""
        runtime = self._agents.get(agent_id)
        if runtime is None:
            return False
        await runtime.shutdown()
        del self._agents[agent_id]
        logger.info("Removed agent '%s'", agent_id)
        return True

    # --- Dispatch ---

    async def execute_agent(
        self,
        agent_id: str,
        input_data: Any,
        context: ExecutionContext | dict[str, Any] | None = None,
    ) -> AgentResponse:
        """Run one dispatch through the plugins and the agent's retry wrapper.

        Raises:
            AgentNotFoundError: If no live agent has ``agent_id``.
            AgentShutdownError: If the agent has been shut down.
        """
        runtime = self._agents.get(agent_id)
        if runtime is None:
            raise AgentNotFoundError(agent_id)
        if runtime.status is AgentStatus.SHUTDOWN:
            raise AgentShutdownError(agent_id)

        self._total_executions += 1
        execution_id = uuid.uuid4().hex
        with execution_scope(agent_id, execution_id):
            return await self._dispatch(runtime, input_data, context, execution_id)

    async def _dispatch(
        self,
        runtime: AgentRuntime,
        input_data: Any,
        context: ExecutionContext | dict[str, Any] | None,
        execution_id: str,
    ) -> AgentResponse:
        agent_id = runtime.agent_id
        plugin_context = PluginContext(
            agent_id=agent_id,
            agent_type=runtime.type_name,
            execution_id=execution_id,
        )
        plugins = [p for p in self._plugins if p.is_enabled()]

        try:
            input_data = await self._run_before_hooks(plugins, input_data, plugin_context)
            if plugin_context.get(CACHED_MARKER):
                logger.debug("Serving '%s' from plugin cache", agent_id)
                response = _coerce_response(
                    plugin_context.get(CACHED_RESPONSE_MARKER)
                )
            else:
                response = await runtime.execute_with_retry(input_data, context)
        except Exception as exc:
            logger.error("Unexpected failure executing '%s': %s", agent_id, exc)
            response = AgentResponse(
                success=False,
                error=str(exc) or "Unknown execution error",
                execution_time_ms=0,
            )

        response = await self._run_after_hooks(plugins, response, plugin_context)
        if not response.success:
            await self._run_error_hooks(plugins, response, plugin_context)
        return response

    async def _run_before_hooks(
        self, plugins: list[BasePlugin], input_data: Any, context: PluginContext
    ) -> Any:
        for plugin in plugins:
            input_data = await plugin.safe_execute(
                partial(plugin.before_execution, input_data, context),
                input_data,
                "before_execution failed",
            )
            input_data = _move_markers(input_data, context)
        return input_data

    async def _run_after_hooks(
        self, plugins: list[BasePlugin], response: AgentResponse, context: PluginContext
    ) -> AgentResponse:
        for plugin in plugins:
            result = await plugin.safe_execute(
                partial(plugin.after_execution, response, context),
                response,
                "after_execution failed",
            )
            try:
                response = _coerce_response(result)
            except (TypeError, ValueError) as exc:
                logger.warning(
                    "Plugin %s returned an invalid response, ignored: %s",
                    plugin.name, exc,
                )
        return response

    async def _run_error_hooks(
        self, plugins: list[BasePlugin], response: AgentResponse, context: PluginContext
    ) -> None:
        error = AgentExecutionError(context.agent_id, response.error or "Unknown error")
        for plugin in plugins:
            await plugin.safe_execute(
                partial(plugin.on_error, error, context), None, "on_error failed",
            )

    # --- Plugins ---

    async def register_plugin(self, plugin: BasePlugin) -> None:
        """Initialize ``plugin`` and add it to the dispatch path.

        Raises:
            DuplicatePluginError: If a plugin with the same name is registered.
        """
        if self.get_plugin(plugin.name) is not None:
            raise DuplicatePluginError(plugin.name)
        await plugin.init()
        self._plugins.append(plugin)
        logger.info("Registered plugin %s v%s", plugin.name, plugin.version)

    async def unregister_plugin(self, name: str) -> bool:
        """Destroy and remove a plugin. False if no plugin has ``name``."""
        plugin = self.get_plugin(name)
        if plugin is None:
            return False
        await plugin.destroy()
        self._plugins.remove(plugin)
        return True

    def get_plugin(self, name: str) -> BasePlugin | None:
        return next((p for p in self._plugins if p.name == name), None)

    @property
    def plugins(self) -> list[BasePlugin]:
        """Registered plugins in hook order."""
        return list(self._plugins)

    async def enable_cache(self) -> CachePlugin:
        """Register a CachePlugin configured from settings (or defaults)."""
        from agentengine.plugins.cache import CachePlugin
        from agentengine.plugins.models import CacheConfig

        config = CacheConfig()
        if self._settings is not None:
            config = CacheConfig(
                default_ttl_ms=self._settings.cache_default_ttl_ms,
                max_entries=self._settings.cache_max_entries,
                cleanup_interval_ms=self._settings.cache_cleanup_interval_ms,
            )
        plugin = CachePlugin(config)
        await self.register_plugin(plugin)
        return plugin

    # --- Events ---

    def on(self, event: AgentEvent | str, listener: EngineListener) -> None:
        """Subscribe to lifecycle events of every agent: ``listener(agent_id, payload)``."""
        self._listeners.on(event, listener)

    def off(self, event: AgentEvent | str, listener: EngineListener) -> bool:
        return self._listeners.off(event, listener)

    def _setup_event_forwarding(self, runtime: AgentRuntime) -> None:
        for event in AgentEvent:
            runtime.on(event, partial(self._forward_event, runtime.agent_id, event))

    def _forward_event(
        self, agent_id: str, event: AgentEvent, payload: EventPayload
    ) -> None:
        logger.debug("Agent '%s' event %s", agent_id, event.value)
        self._listeners.emit(event, agent_id, payload)

    # --- Reporting ---

    def get_stats(self) -> EngineStats:
        agents_by_status = {status.value: 0 for status in AgentStatus}
        for runtime in self._agents.values():
            agents_by_status[runtime.status.value] += 1

        return EngineStats(
            total_agents=len(self._agents),
            total_executions=self._total_executions,
            available_types=self.available_types,
            agents_by_status=agents_by_status,
        )

    def get_agents_by_status(self, status: AgentStatus | str) -> dict[str, AgentRuntime]:
        wanted = AgentStatus(status)
        return {aid: rt for aid, rt in self._agents.items() if rt.status is wanted}

    def get_agents_by_type(self, type_name: str) -> dict[str, AgentRuntime]:
        """Agents whose instance is of the class registered as ``type_name``."""
        agent_cls = self._agent_types.get(type_name)
        if agent_cls is None:
            return {}
        return {
            aid: rt for aid, rt in self._agents.items()
            if isinstance(rt.agent, agent_cls)
        }

    def get_agent_info(self, agent_id: str) -> AgentInfo | None:
        runtime = self._agents.get(agent_id)
        if runtime is None:
            return None
        return AgentInfo(
            id=agent_id,
            type_name=runtime.type_name,
            config=runtime.config,
            status=runtime.status,
            metrics=runtime.metrics,
            settings=runtime.settings,
        )

    # --- Mutation helpers ---

    def update_agent_config(self, agent_id: str, updates: dict[str, Any]) -> bool:
        runtime = self._agents.get(agent_id)
        if runtime is None:
            return False
        runtime.update_config(updates)
        return True

    def reset_agent_metrics(self, agent_id: str) -> bool:
        runtime = self._agents.get(agent_id)
        if runtime is None:
            return False
        runtime.reset_metrics()
        return True

    def reset_all_metrics(self) -> None:
        for runtime in self._agents.values():
            runtime.reset_metrics()
        self._total_executions = 0

    # --- Shutdown ---

    async def shutdown(self) -> None:
        """Shut down every agent and plugin, then clear both registries."""
        runtimes = list(self._agents.values())
        results = await asyncio.gather(
            *(rt.shutdown() for rt in runtimes), return_exceptions=True
        )
        for runtime, result in zip(runtimes, results):
            if isinstance(result, Exception):
                logger.warning("Agent '%s' shutdown failed: %s", runtime.agent_id, result)
        self._agents.clear()

        await asyncio.gather(
            *(p.safe_execute(p.destroy, None, "destroy failed") for p in self._plugins)
        )
        self._plugins.clear()
        logger.info("Engine shut down (%d agents)", len(runtimes))

    def _apply_defaults(self, config: AgentConfig) -> AgentConfig:
        """Fill unset execution options from settings."""
        if self._settings is None:
            return config
        s = self._settings
        updates: dict[str, Any] = {}
        if config.retry_policy is None:
            updates["retry_policy"] = RetryPolicy(
                max_retries=s.default_max_retries, backoff_ms=s.default_backoff_ms,
            )
        if config.max_execution_time_ms is None and s.default_max_execution_time_ms:
            updates["max_execution_time_ms"] = s.default_max_execution_time_ms
        if "cancel_on_timeout" not in config.model_fields_set:
            updates["cancel_on_timeout"] = s.default_cancel_on_timeout
        return config.model_copy(update=updates)


def _move_markers(input_data: Any, context: PluginContext) -> Any:
    """Move ``__``-prefixed hook markers from a dict input onto the context."""
    if not isinstance(input_data, dict):
        return input_data
    clean: dict[str, Any] = {}
    for key, value in input_data.items():
        if isinstance(key, str) and key.startswith(MARKER_PREFIX):
            context.annotate(key, value)
        else:
            clean[key] = value
    return clean


def _coerce_response(value: Any) -> AgentResponse:
    if isinstance(value, AgentResponse):
        return value
    if isinstance(value, dict):
        return AgentResponse.model_validate(value)
    raise TypeError(f"Expected AgentResponse, got {type(value).__name__}")


def _import_agent_class(class_path: str) -> type[BaseAgent]:
    """Import an agent class from a dotted path.

    Args:
        class_path: e.g. 'agentengine.agents.chat.ChatAgent'
    """
    parts = class_path.rsplit(".", 1)
    if len(parts) != 2:
        raise RegistryError(f"Invalid class path: {class_path}")
    module_path, class_name = parts

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise RegistryError(f"Cannot import module {module_path}: {exc}") from exc

    cls = getattr(module, class_name, None)
    if cls is None:
        raise RegistryError(f"Class {class_name} not found in {module_path}")

    if not isinstance(cls, type) or not issubclass(cls, BaseAgent):
        raise RegistryError(f"{class_path} is not a BaseAgent subclass")

    return cls
