# src/agents/task.py — v1
"""Task agent — in-memory task board with simulated work.

Actions: create, execute, list, get, update, delete. Tasks live only as long
as the agent instance. Executing a task sleeps for a priority-scaled
simulated work time and produces a result shaped by the task's kind
(data-processing, report-generation, backup, general-task).
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
import uuid
from typing import Any

from pydantic import ValidationError

from agentengine.agents.base_agent import BaseAgent
from agentengine.agents.models import (
    PRIORITY_ORDER,
    Task,
    TaskInput,
    TaskSettings,
)
from agentengine.core.models import AgentConfig, AgentResponse, ExecutionContext

logger = logging.getLogger(__name__)

_ACTIONS = ("create", "execute", "list", "get", "update", "delete")
_PRIORITY_MULTIPLIER = {"low": 0.5, "medium": 1.0, "high": 1.5}


class TaskError(ValueError):
    """A task operation was rejected; reported as a failed response."""


class TaskAgent(BaseAgent):
    """Manages and runs tasks addressed by ``{"action": ..., ...}`` inputs."""

    # Base simulated work time before priority and jitter, milliseconds
    base_work_ms: float = 100.0

    def __init__(self, config: AgentConfig) -> None:
        super().__init__(config)
        self._tasks: dict[str, Task] = {}
        self._running: set[str] = set()

    def default_settings(self) -> dict[str, Any]:
        return TaskSettings().model_dump()

    def validate_settings(self, new_settings: dict[str, Any]) -> None:
        TaskSettings.model_validate({**TaskSettings().model_dump(), **new_settings})

    async def execute(
        self, input_data: Any, context: ExecutionContext
    ) -> AgentResponse:
        if not isinstance(input_data, dict):
            return AgentResponse(
                success=False,
                error="Invalid input format. Expected object with action property.",
            )
        action = input_data.get("action")
        if not action:
            return AgentResponse(success=False, error="Missing action in input.")
        if action not in _ACTIONS:
            return AgentResponse(success=False, error=f"Unknown action: {action}")

        try:
            task_input = TaskInput.model_validate(input_data)
        except ValidationError as exc:
            return AgentResponse(success=False, error=f"Invalid task input: {exc}")

        handler = getattr(self, f"_{task_input.action}_task")
        try:
            result = await handler(task_input)
        except TaskError as exc:
            return AgentResponse(success=False, error=str(exc))
        return AgentResponse(success=True, data=result)

    # --- Actions ---

    async def _create_task(self, task_input: TaskInput) -> dict[str, Any]:
        if not task_input.name:
            raise TaskError("Task name is required for creation")
        settings = TaskSettings.model_validate(self._config.settings)
        task = Task(
            id=str(uuid.uuid4()),
            name=task_input.name,
            description=task_input.description or "",
            priority=task_input.priority or settings.default_priority,
        )
        self._tasks[task.id] = task
        logger.debug("Created task %s (%s)", task.id, task.name)
        return {
            "task_id": task.id,
            "task": task.model_dump(mode="json"),
            "message": f"Task '{task.name}' created successfully",
        }

    async def _execute_task(self, task_input: TaskInput) -> dict[str, Any]:
        task = self._require_task(task_input, "Task ID is required for execution")

        if task.status == "completed":
            return {
                "task_id": task.id,
                "message": "Task already completed",
                "result": task.result,
            }
        if task.status == "running":
            raise TaskError("Task is already running")

        settings = TaskSettings.model_validate(self._config.settings)
        if len(self._running) >= settings.max_concurrent_tasks:
            raise TaskError(
                f"Maximum concurrent tasks limit reached ({settings.max_concurrent_tasks})"
            )

        task.status = "running"
        task.touch()
        self._running.add(task.id)
        try:
            result = await self._perform_task_work(task, task_input.data)
        except asyncio.CancelledError:
            # Timed out and cancelled by the runtime; the task stays re-runnable
            self._fail_task(task, "Execution cancelled")
            raise
        except Exception as exc:
            self._fail_task(task, str(exc) or "Unknown execution error")
            raise
        finally:
            self._running.discard(task.id)

        task.status = "completed"
        task.result = result
        task.error = None
        task.touch()
        return {
            "task_id": task.id,
            "message": f"Task '{task.name}' completed successfully",
            "result": result,
        }

    async def _list_task(self, task_input: TaskInput) -> dict[str, Any]:
        tasks = sorted(
            self._tasks.values(),
            key=lambda t: (-PRIORITY_ORDER[t.priority], t.created_at),
        )
        return {
            "tasks": [t.model_dump(mode="json") for t in tasks],
            "total_tasks": len(tasks),
            "running_tasks": len(self._running),
            "pending_tasks": sum(1 for t in tasks if t.status == "pending"),
            "completed_tasks": sum(1 for t in tasks if t.status == "completed"),
            "failed_tasks": sum(1 for t in tasks if t.status == "failed"),
        }

    async def _get_task(self, task_input: TaskInput) -> dict[str, Any]:
        task = self._require_task(task_input, "Task ID is required")
        return {"task": task.model_dump(mode="json")}

    async def _update_task(self, task_input: TaskInput) -> dict[str, Any]:
        task = self._require_task(task_input, "Task ID is required for update")
        if task.status == "running":
            raise TaskError("Cannot update a running task")

        if task_input.name:
            task.name = task_input.name
        if task_input.description is not None:
            task.description = task_input.description
        if task_input.priority:
            task.priority = task_input.priority
        task.touch()
        return {
            "task_id": task.id,
            "task": task.model_dump(mode="json"),
            "message": f"Task '{task.name}' updated successfully",
        }

    async def _delete_task(self, task_input: TaskInput) -> dict[str, Any]:
        task = self._require_task(task_input, "Task ID is required for deletion")
        if task.status == "running":
            raise TaskError("Cannot delete a running task")
        del self._tasks[task.id]
        self._running.discard(task.id)
        return {
            "task_id": task.id,
            "message": f"Task '{task.name}' deleted successfully",
        }

    @staticmethod
    def _fail_task(task: Task, error: str) -> None:
        task.status = "failed"
        task.error = error
        task.touch()

    def _require_task(self, task_input: TaskInput, missing_id_error: str) -> Task:
        if not task_input.task_id:
            raise TaskError(missing_id_error)
        task = self._tasks.get(task_input.task_id)
        if task is None:
            raise TaskError(f"Task with ID '{task_input.task_id}' not found")
        return task

    # --- Simulated work ---

    async def _perform_task_work(self, task: Task, data: Any = None) -> dict[str, Any]:
        await asyncio.sleep(self._work_time_ms(task) / 1000)
        return _task_result(task, data)

    def _work_time_ms(self, task: Task) -> float:
        jitter = 0.5 + random.random()  # noqa: S311
        return self.base_work_ms * _PRIORITY_MULTIPLIER[task.priority] * jitter

    # --- Queries ---

    @property
    def task_count(self) -> int:
        return len(self._tasks)

    @property
    def running_task_count(self) -> int:
        return len(self._running)

    def get_tasks_by_status(self, status: str) -> list[Task]:
        return [t.model_copy() for t in self._tasks.values() if t.status == status]

    def get_tasks_by_priority(self, priority: str) -> list[Task]:
        return [t.model_copy() for t in self._tasks.values() if t.priority == priority]

    def clear_completed_tasks(self) -> int:
        """Drop completed tasks. Returns how many were removed."""
        completed = [tid for tid, t in self._tasks.items() if t.status == "completed"]
        for tid in completed:
            del self._tasks[tid]
        return len(completed)

    @property
    def max_concurrent_tasks(self) -> int:
        return self._config.settings["max_concurrent_tasks"]

    def set_max_concurrent_tasks(self, limit: int) -> None:
        if limit < 1:
            raise ValueError("Max concurrent tasks must be at least 1")
        self.update_settings({"max_concurrent_tasks": limit})

    def shutdown(self) -> None:
        self._running.clear()


def determine_task_type(task: Task) -> str:
    """Classify a task by keywords in its name and description."""
    combined = f"{task.name} {task.description}".lower()
    if "data" in combined or "process" in combined:
        return "data-processing"
    if "report" in combined or "generate" in combined:
        return "report-generation"
    if "backup" in combined or "database" in combined:
        return "backup"
    return "general-task"


def _task_result(task: Task, input_data: Any) -> dict[str, Any]:
    task_type = determine_task_type(task)
    rnd = random.Random()

    if task_type == "data-processing":
        return {
            "type": task_type,
            "processed_records": rnd.randint(100, 1099),
            "processing_time": rnd.randint(1000, 5999),
            "status": "success",
            "input_data": input_data,
        }
    if task_type == "report-generation":
        return {
            "type": task_type,
            "report_size": f"{rnd.randint(10, 59)} MB",
            "pages_generated": rnd.randint(20, 119),
            "format": "PDF",
            "status": "generated",
        }
    if task_type == "backup":
        return {
            "type": task_type,
            "backup_size": f"{rnd.randint(100, 599)} GB",
            "files_backed_up": rnd.randint(1000, 10999),
            "compression_ratio": f"{rnd.uniform(0.7, 1.0):.2f}",
            "status": "completed",
        }
    return {
        "type": task_type,
        "execution_time": int(time.time() * 1000),
        "status": "completed",
        "message": f"Task '{task.name}' executed successfully",
        "priority": task.priority,
        "input_data": input_data,
    }
