# tests/unit/agents/test_task_agent.py — v1
"""Tests for agents/task.py."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from agentengine.agents.models import Task
from agentengine.agents.task import TaskAgent, determine_task_type
from agentengine.core.models import (
    AgentConfig,
    AgentResponse,
    ExecutionContext,
    RetryPolicy,
)
from agentengine.core.runtime import AgentRuntime


def _agent(**settings) -> TaskAgent:
    agent = TaskAgent(AgentConfig(name="tasks", settings=settings))
    agent.base_work_ms = 0.0
    return agent


async def _run(agent: TaskAgent, **input_data: Any) -> AgentResponse:
    return await agent.execute(input_data, ExecutionContext())


async def _create(agent: TaskAgent, name: str, **kwargs: Any) -> str:
    response = await _run(agent, action="create", name=name, **kwargs)
    assert response.success, response.error
    return response.data["task_id"]


class TestTaskActions:
    @pytest.mark.asyncio
    async def test_create(self):
        agent = _agent()
        response = await _run(agent, action="create", name="Nightly", description="d")

        assert response.success is True
        task = response.data["task"]
        assert task["name"] == "Nightly"
        assert task["status"] == "pending"
        assert task["priority"] == "medium"
        assert response.data["message"] == "Task 'Nightly' created successfully"
        assert agent.task_count == 1

    @pytest.mark.asyncio
    async def test_create_uses_default_priority_setting(self):
        agent = _agent(default_priority="low")
        task_id = await _create(agent, "x")
        assert agent.get_tasks_by_priority("low")[0].id == task_id

    @pytest.mark.asyncio
    async def test_execute_completes(self):
        agent = _agent()
        task_id = await _create(agent, "Process data", priority="high")

        response = await _run(agent, action="execute", task_id=task_id, data={"rows": 3})

        assert response.success is True
        result = response.data["result"]
        assert result["type"] == "data-processing"
        assert result["input_data"] == {"rows": 3}
        assert agent.get_tasks_by_status("completed")[0].id == task_id
        assert agent.running_task_count == 0

    @pytest.mark.asyncio
    async def test_execute_completed_task_returns_stored_result(self):
        agent = _agent()
        task_id = await _create(agent, "Backup")
        first = await _run(agent, action="execute", task_id=task_id)
        second = await _run(agent, action="execute", task_id=task_id)

        assert second.data["message"] == "Task already completed"
        assert second.data["result"] == first.data["result"]

    @pytest.mark.asyncio
    async def test_concurrency_limit(self):
        agent = _agent(max_concurrent_tasks=1)
        task_id = await _create(agent, "t")
        agent._running.add("other")

        response = await _run(agent, action="execute", task_id=task_id)

        assert response.success is False
        assert response.error == "Maximum concurrent tasks limit reached (1)"

    @pytest.mark.asyncio
    async def test_list_sorted_by_priority(self):
        agent = _agent()
        await _create(agent, "low one", priority="low")
        await _create(agent, "high one", priority="high")
        await _create(agent, "medium one")

        response = await _run(agent, action="list")

        names = [t["name"] for t in response.data["tasks"]]
        assert names == ["high one", "medium one", "low one"]
        assert response.data["total_tasks"] == 3
        assert response.data["pending_tasks"] == 3

    @pytest.mark.asyncio
    async def test_get_update_delete(self):
        agent = _agent()
        task_id = await _create(agent, "orig")

        got = await _run(agent, action="get", task_id=task_id)
        assert got.data["task"]["name"] == "orig"

        updated = await _run(agent, action="update", task_id=task_id, name="renamed", priority="high")
        assert updated.data["task"]["name"] == "renamed"
        assert updated.data["task"]["priority"] == "high"

        deleted = await _run(agent, action="delete", task_id=task_id)
        assert deleted.data["message"] == "Task 'renamed' deleted successfully"
        assert agent.task_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "input_data, error",
        [
            ({"action": "create"}, "Task name is required for creation"),
            ({"action": "execute"}, "Task ID is required for execution"),
            ({"action": "get", "task_id": "nope"}, "Task with ID 'nope' not found"),
            ({"action": "update"}, "Task ID is required for update"),
            ({"action": "delete"}, "Task ID is required for deletion"),
            ({"action": "fly"}, "Unknown action: fly"),
            ({"name": "no action"}, "Missing action in input."),
        ],
    )
    async def test_errors(self, input_data, error):
        response = await _agent().execute(input_data, ExecutionContext())
        assert response.success is False
        assert response.error == error

    @pytest.mark.asyncio
    async def test_non_mapping_input(self):
        response = await _agent().execute(["create"], ExecutionContext())
        assert response.error == "Invalid input format. Expected object with action property."

    @pytest.mark.asyncio
    async def test_invalid_priority(self):
        response = await _run(_agent(), action="create", name="x", priority="urgent")
        assert response.success is False
        assert response.error.startswith("Invalid task input:")


class TestTaskHelpers:
    @pytest.mark.asyncio
    async def test_clear_completed(self):
        agent = _agent()
        done = await _create(agent, "a")
        await _create(agent, "b")
        await _run(agent, action="execute", task_id=done)

        assert agent.clear_completed_tasks() == 1
        assert agent.task_count == 1

    def test_max_concurrent_setter(self):
        agent = _agent()
        agent.set_max_concurrent_tasks(5)
        assert agent.max_concurrent_tasks == 5
        with pytest.raises(ValueError):
            agent.set_max_concurrent_tasks(0)

    def test_invalid_settings_rejected(self):
        with pytest.raises(ValueError):
            _agent(max_concurrent_tasks=0)

    @pytest.mark.parametrize(
        "name, description, expected",
        [
            ("Process records", "", "data-processing"),
            ("Quarterly", "generate summary", "report-generation"),
            ("Nightly", "database dump", "backup"),
            ("Misc", "", "general-task"),
        ],
    )
    def test_determine_task_type(self, name, description, expected):
        task = Task(id="t1", name=name, description=description)
        assert determine_task_type(task) == expected


class TestTaskTimeout:
    @pytest.mark.asyncio
    async def test_cancelled_execution_leaves_task_recoverable(self):
        agent = TaskAgent(AgentConfig(
            name="tasks",
            max_execution_time_ms=20,
            retry_policy=RetryPolicy(max_retries=0),
        ))
        agent.base_work_ms = 400.0
        runtime = AgentRuntime("tasks", agent)
        task_id = await _create(agent, "Slow job", priority="high")

        response = await runtime.execute_with_retry({"action": "execute", "task_id": task_id})
        assert response.success is False
        assert "Execution timeout after 20ms" in response.error

        await asyncio.sleep(0.01)
        got = await _run(agent, action="get", task_id=task_id)
        assert got.data["task"]["status"] == "failed"
        assert got.data["task"]["error"] == "Execution cancelled"
        assert agent.running_task_count == 0

        agent.base_work_ms = 0.0
        retried = await _run(agent, action="execute", task_id=task_id)
        assert retried.success is True
        assert agent.get_tasks_by_status("completed")[0].error is None

    @pytest.mark.asyncio
    async def test_cancelled_task_can_be_deleted(self):
        agent = TaskAgent(AgentConfig(
            name="tasks",
            max_execution_time_ms=20,
            retry_policy=RetryPolicy(max_retries=0),
        ))
        agent.base_work_ms = 400.0
        runtime = AgentRuntime("tasks", agent)
        task_id = await _create(agent, "Slow job")

        await runtime.execute_with_retry({"action": "execute", "task_id": task_id})
        await asyncio.sleep(0.01)

        deleted = await _run(agent, action="delete", task_id=task_id)
        assert deleted.success is True
        assert agent.task_count == 0
