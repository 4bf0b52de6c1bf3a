# src/agents/models.py — v1
"""Typed inputs, outputs and settings of the built-in agent kinds."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr

Priority = Literal["low", "medium", "high"]
TaskAction = Literal["create", "execute", "list", "get", "update", "delete"]
TaskState = Literal["pending", "running", "completed", "failed"]

PRIORITY_ORDER: dict[str, int] = {"high": 3, "medium": 2, "low": 1}


# === Chat ===


class ChatInput(BaseModel):
    """Input of the ``chat`` agent."""

    model_config = ConfigDict(extra="ignore")

    message: StrictStr


class ChatOutput(BaseModel):
    response: str
    personality: str
    message_length: int


class ChatSettings(BaseModel):
    personality: str = "friendly"
    max_response_length: int = Field(default=150, ge=1)
    language: str = "en"


# === Task ===


class TaskInput(BaseModel):
    """Input of the ``task`` agent. Which fields are required depends on ``action``."""

    model_config = ConfigDict(extra="ignore")

    action: TaskAction
    task_id: str | None = None
    name: str | None = None
    description: str | None = None
    priority: Priority | None = None
    data: Any = None


class Task(BaseModel):
    """A unit of simulated work held in memory by a TaskAgent."""

    id: str
    name: str
    description: str = ""
    priority: Priority = "medium"
    status: TaskState = "pending"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    result: Any = None
    error: str | None = None

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)


class TaskSettings(BaseModel):
    max_concurrent_tasks: int = Field(default=3, ge=1)
    default_priority: Priority = "medium"
    auto_schedule: bool = False
