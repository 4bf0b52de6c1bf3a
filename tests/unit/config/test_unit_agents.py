# tests/unit/config/test_agents.py — v1
"""Tests for config/agents.py — built-in agent type table."""

from __future__ import annotations

import importlib

from agentengine.agents.base_agent import BaseAgent
from agentengine.config.agents import BUILTIN_AGENT_TYPES


class TestBuiltinAgentTypes:
    def test_known_types(self):
        assert list(BUILTIN_AGENT_TYPES) == ["chat", "task"]

    def test_all_entries_are_fqcn(self):
        for class_path in BUILTIN_AGENT_TYPES.values():
            assert class_path.startswith("agentengine.")

    def test_entries_resolve_to_agents(self):
        for class_path in BUILTIN_AGENT_TYPES.values():
            module_path, class_name = class_path.rsplit(".", 1)
            cls = getattr(importlib.import_module(module_path), class_name)
            assert issubclass(cls, BaseAgent)
