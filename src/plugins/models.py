# src/plugins/models.py — v1
"""Plugin domain models: PluginMetadata, PluginContext, CacheEntry, CacheStats."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field


class PluginMetadata(BaseModel):
    """Identity of a plugin."""

    name: str
    version: str
    description: str | None = None
    author: str | None = None
    dependencies: list[str] = Field(default_factory=list)


class PluginContext(BaseModel):
    """Per-dispatch context handed to every hook.

    Callers may pass extension fields as keyword arguments (kept as pydantic
    extras). Hooks attach markers through ``annotate``.
    """

    model_config = ConfigDict(extra="allow")

    agent_id: str
    agent_type: str
    execution_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    annotations: dict[str, Any] = Field(default_factory=dict)

    def annotate(self, key: str, value: Any) -> None:
        self.annotations[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Read a declared field, an annotation or an extension field."""
        if key in type(self).model_fields:
            return getattr(self, key)
        if key in self.annotations:
            return self.annotations[key]
        return (self.model_extra or {}).get(key, default)


class CacheConfig(BaseModel):
    """Recognized CachePlugin options."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    default_ttl_ms: int = Field(default=30_000, ge=0)
    max_entries: int = Field(default=1000, ge=1)
    cleanup_interval_ms: int = Field(default=60_000, gt=0)
    key_generator: Callable[[Any, PluginContext], str] | None = None


class CacheEntry(BaseModel):
    """One memoized value with its store time and TTL."""

    value: Any
    stored_at: float
    ttl_ms: int
    hits: int = 0

    @property
    def timestamp(self) -> datetime:
        """Store time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.stored_at, tz=timezone.utc)

    def is_valid(self, now: float) -> bool:
        """True while ``now - stored_at < ttl``."""
        return (now - self.stored_at) * 1000 < self.ttl_ms


class CacheStats(BaseModel):
    """Snapshot returned by ``CachePlugin.get_cache_stats``."""

    total_entries: int
    valid_entries: int
    expired_entries: int
    hit_rate: float
    total_hits: int
    total_misses: int
