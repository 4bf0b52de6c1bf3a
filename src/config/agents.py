# src/config/agents.py — v1
"""Declarative table of built-in agent types.

Type name -> fully qualified class path, imported by
``AgentEngine.load_agent_types``.
"""

from __future__ import annotations

BUILTIN_AGENT_TYPES: dict[str, str] = {
    "chat": "agentengine.agents.chat.ChatAgent",
    "task": "agentengine.agents.task.TaskAgent",
}
