# src/__init__.py — v1
"""agentengine — async runtime for pluggable agents.

Usage:
    from agentengine import AgentEngine, AgentConfig
    engine = AgentEngine()
    engine.register_agent_type("chat", ChatAgent)
"""

from agentengine.core.engine import AgentEngine
from agentengine.core.models import (
    AgentConfig,
    AgentResponse,
    AgentStatus,
    ExecutionContext,
    RetryPolicy,
)
from agentengine.version import __version__

__all__ = [
    "AgentConfig",
    "AgentEngine",
    "AgentResponse",
    "AgentStatus",
    "ExecutionContext",
    "RetryPolicy",
    "__version__",
]
