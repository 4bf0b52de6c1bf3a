# src/core/errors.py — v1
"""Engine error taxonomy.

Registry errors are fatal to the call that raised them, never to the engine.
Execution faults and validation errors are not raised: they are converted to
failed AgentResponse values at the runtime boundary.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all agentengine errors."""


class RegistryError(EngineError):
    """Raised when an agent type or agent instance cannot be resolved."""


class DuplicateTypeError(RegistryError):
    """An agent type with this name is already registered."""

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"Agent type '{type_name}' is already registered")


class UnknownTypeError(RegistryError):
    """No agent type is registered under this name."""

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"Unknown agent type: {type_name}")


class DuplicateIdError(RegistryError):
    """An agent with this id already exists."""

    def __init__(self, agent_id: str):
        self.agent_id = agent_id
        super().__init__(f"Agent with ID '{agent_id}' already exists")


class ConstructionError(RegistryError):
    """The agent class raised while being instantiated."""

    def __init__(self, type_name: str, cause: Exception):
        self.type_name = type_name
        self.cause = cause
        super().__init__(f"Failed to create agent of type '{type_name}': {cause}")


class AgentNotFoundError(RegistryError):
    """No live agent has this id."""

    def __init__(self, agent_id: str):
        self.agent_id = agent_id
        super().__init__(f"Agent with ID '{agent_id}' not found")


class AgentShutdownError(RegistryError):
    """The agent reached the terminal shutdown status."""

    def __init__(self, agent_id: str):
        self.agent_id = agent_id
        super().__init__(f"Agent '{agent_id}' has been shutdown")


class DuplicatePluginError(RegistryError):
    """A plugin with this name is already registered on the engine."""

    def __init__(self, plugin_name: str):
        self.plugin_name = plugin_name
        super().__init__(f"Plugin '{plugin_name}' is already registered")


class PluginConfigError(EngineError):
    """Plugin configuration is malformed or incomplete."""


class AgentExecutionError(EngineError):
    """Failure of a dispatched execution, handed to plugin ``on_error`` hooks."""

    def __init__(self, agent_id: str, message: str):
        self.agent_id = agent_id
        super().__init__(message)
