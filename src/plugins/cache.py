# src/plugins/cache.py — v1
"""TTL response cache plugin.

Memoizes successful responses keyed by a hash of (input, agent_id,
agent_type) or by a caller-supplied key generator.

Lookup:
  - before_execution annotates a dict input with the cache-hit marker and
    the stored response, or with the cache-miss marker and the key.
  - after_execution returns the stored response on a hit (it takes
    precedence over a freshly computed one), and stores a deep copy of a
    successful response on a miss.

Eviction is by store time: inserting a new key at capacity removes the
single entry with the earliest ``stored_at``. Reads do not refresh it.
Expired entries count as misses even before the periodic sweep removes them.
"""

from __future__ import annotations

import asyncio
import copy
import hashlib
import json
import logging
import time
from typing import Any, Callable

from pydantic import BaseModel

from agentengine.core.models import AgentResponse
from agentengine.plugins.base_plugin import (
    CACHE_KEY_MARKER,
    CACHED_MARKER,
    CACHED_RESPONSE_MARKER,
    BasePlugin,
)
from agentengine.plugins.models import (
    CacheConfig,
    CacheEntry,
    CacheStats,
    PluginContext,
    PluginMetadata,
)

logger = logging.getLogger(__name__)


class CachePlugin(BasePlugin):
    """Response caching with TTL expiry and size-bounded eviction.

    Args:
        config: Cache options. Defaults: 30s TTL, 1000 entries, 60s sweep.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(
            PluginMetadata(
                name="cache-plugin",
                version="1.0.0",
                description="Provides response caching with TTL support",
            )
        )
        self._config = (config or CacheConfig()).model_copy()
        self._clock = clock
        self._key_generator = self._config.key_generator or default_cache_key
        self._cache: dict[str, CacheEntry] = {}
        self._total_hits = 0
        self._total_misses = 0
        self._cleanup_task: asyncio.Task[None] | None = None

    # --- Lifecycle ---

    async def on_init(self) -> None:
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def on_destroy(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
        self._cache.clear()

    async def _cleanup_loop(self) -> None:
        interval_s = self._config.cleanup_interval_ms / 1000
        while True:
            await asyncio.sleep(interval_s)
            removed = self.cleanup_expired_entries()
            if removed:
                logger.debug("Cache sweep removed %d expired entries", removed)

    # --- Hooks ---

    async def before_execution(self, input_data: Any, context: PluginContext) -> Any:
        if not self.is_enabled():
            return input_data
        if not isinstance(input_data, dict):
            logger.debug("Non-mapping input for %s, not cached", context.agent_id)
            return input_data

        cache_key = self._key_generator(input_data, context)
        entry = self._cache.get(cache_key)

        if entry is not None and entry.is_valid(self._clock()):
            entry.hits += 1
            self._total_hits += 1
            return {
                **input_data,
                CACHED_MARKER: True,
                CACHE_KEY_MARKER: cache_key,
                CACHED_RESPONSE_MARKER: entry.value,
            }

        self._total_misses += 1
        return {**input_data, CACHED_MARKER: False, CACHE_KEY_MARKER: cache_key}

    async def after_execution(self, response: Any, context: PluginContext) -> Any:
        if not self.is_enabled():
            return response

        if context.get(CACHED_MARKER):
            return _clone(context.get(CACHED_RESPONSE_MARKER))

        cache_key = context.get(CACHE_KEY_MARKER)
        if cache_key and _is_success(response):
            self._set_entry(cache_key, response)

        return response

    # --- Store ---

    def _set_entry(self, key: str, value: Any, ttl_ms: int | None = None) -> None:
        if key not in self._cache and len(self._cache) >= self._config.max_entries:
            self._evict_oldest_entry()

        self._cache[key] = CacheEntry(
            value=_clone(value),
            stored_at=self._clock(),
            ttl_ms=self._config.default_ttl_ms if ttl_ms is None else ttl_ms,
        )

    def _evict_oldest_entry(self) -> None:
        if not self._cache:
            return
        oldest_key = min(self._cache, key=lambda k: self._cache[k].stored_at)
        del self._cache[oldest_key]
        logger.debug("Evicted cache entry %s", oldest_key)

    def cleanup_expired_entries(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [k for k, e in self._cache.items() if not e.is_valid(now)]
        for key in expired:
            del self._cache[key]
        return len(expired)

    # --- Administration ---

    def get_cache_stats(self) -> CacheStats:
        now = self._clock()
        valid = sum(1 for e in self._cache.values() if e.is_valid(now))
        total_requests = self._total_hits + self._total_misses
        hit_rate = (self._total_hits / total_requests) * 100 if total_requests else 0.0
        return CacheStats(
            total_entries=len(self._cache),
            valid_entries=valid,
            expired_entries=len(self._cache) - valid,
            hit_rate=hit_rate,
            total_hits=self._total_hits,
            total_misses=self._total_misses,
        )

    def clear_cache(self) -> None:
        """Drop every entry and reset hit/miss counters."""
        self._cache.clear()
        self._total_hits = 0
        self._total_misses = 0

    def delete_cache_entry(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    def get_cache_entry(self, key: str) -> Any:
        """Copy of the stored value, or None if absent or expired."""
        entry = self._cache.get(key)
        if entry is not None and entry.is_valid(self._clock()):
            return _clone(entry.value)
        return None

    def set_cache_entry(self, key: str, value: Any, ttl_ms: int | None = None) -> None:
        """Store ``value`` under ``key`` outside the hook flow."""
        self._set_entry(key, value, ttl_ms)

    def preload_cache(self, entries: dict[str, dict[str, Any]]) -> None:
        """Store many entries, each given as ``{"value": ..., "ttl_ms": ...}``."""
        for key, data in entries.items():
            self._set_entry(key, data["value"], data.get("ttl_ms"))

    def export_cache(self) -> dict[str, dict[str, Any]]:
        """Valid entries only, with ISO-8601 timestamps."""
        now = self._clock()
        return {
            key: {
                "value": _clone(entry.value),
                "timestamp": entry.timestamp.isoformat(),
                "ttl_ms": entry.ttl_ms,
                "hits": entry.hits,
            }
            for key, entry in self._cache.items()
            if entry.is_valid(now)
        }

    @property
    def default_ttl_ms(self) -> int:
        return self._config.default_ttl_ms

    def set_default_ttl(self, ttl_ms: int) -> None:
        if ttl_ms < 0:
            raise ValueError("TTL must be non-negative")
        self._config.default_ttl_ms = ttl_ms

    @property
    def max_entries(self) -> int:
        return self._config.max_entries

    def set_max_entries(self, max_entries: int) -> None:
        """Change capacity, evicting oldest entries one at a time if over it."""
        if max_entries < 1:
            raise ValueError("Max entries must be at least 1")
        self._config.max_entries = max_entries
        while len(self._cache) > max_entries:
            self._evict_oldest_entry()

    def __len__(self) -> int:
        return len(self._cache)


def default_cache_key(input_data: Any, context: PluginContext) -> str:
    """SHA-256 over the canonical JSON of the input and the agent identity."""
    payload = json.dumps(
        {
            "input": input_data,
            "agent_id": context.agent_id,
            "agent_type": context.agent_type,
        },
        sort_keys=True,
        default=str,
    )
    return "cache_" + hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def _is_success(response: Any) -> bool:
    if isinstance(response, AgentResponse):
        return response.success
    if isinstance(response, dict):
        return bool(response.get("success"))
    return False


def _clone(value: Any) -> Any:
    """Structural copy: pydantic models via model_copy, anything else deepcopy."""
    if isinstance(value, BaseModel):
        return value.model_copy(deep=True)
    return copy.deepcopy(value)
