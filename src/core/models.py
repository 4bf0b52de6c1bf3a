# src/core/models.py — v1
"""Execution record types shared by the runtime, the engine and the plugins.

All durations are integer milliseconds (``*_ms`` fields).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

MAX_ERROR_LOG = 10


class AgentStatus(str, Enum):
    """Lifecycle status of an agent. ``SHUTDOWN`` is terminal."""

    IDLE = "idle"
    RUNNING = "running"
    ERROR = "error"
    SHUTDOWN = "shutdown"


class RetryPolicy(BaseModel):
    """Retry budget and exponential backoff base for one agent."""

    max_retries: int = Field(default=2, ge=0)
    backoff_ms: int = Field(default=1000, ge=0)


class AgentConfig(BaseModel):
    """Configuration owned by a single agent instance."""

    name: str
    version: str = "1.0.0"
    description: str = ""
    capabilities: set[str] = Field(default_factory=set)
    settings: dict[str, Any] = Field(default_factory=dict)
    max_execution_time_ms: int | None = Field(default=None, gt=0)
    retry_policy: RetryPolicy | None = None
    cancel_on_timeout: bool = True


class ExecutionContext(BaseModel):
    """Per-call ambient data. Unknown keys are kept as extension fields."""

    model_config = ConfigDict(extra="allow")

    user_id: str | None = None
    session_id: str | None = None
    environment: str | None = None
    timestamp: str | None = None


class AgentResponse(BaseModel):
    """Uniform result of one execution, returned to every caller layer."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: Any = None
    error: str | None = None
    execution_time_ms: int = 0


class AgentMetrics(BaseModel):
    """Aggregated execution metrics of a single agent."""

    executions_count: int = 0
    success_rate: float = 0.0
    average_execution_time_ms: float = 0.0
    last_execution: datetime | None = None
    errors: list[str] = Field(default_factory=list)


class EngineStats(BaseModel):
    """Engine-wide view, recomputed from the live agent set on every read."""

    total_agents: int
    total_executions: int
    available_types: list[str]
    agents_by_status: dict[str, int]


class AgentInfo(BaseModel):
    """Detailed snapshot of one live agent."""

    id: str
    type_name: str
    config: AgentConfig
    status: AgentStatus
    metrics: AgentMetrics
    settings: dict[str, Any]
