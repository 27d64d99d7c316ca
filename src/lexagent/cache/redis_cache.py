"""Redis-backed tool result cache.

Optional; complements the in-memory cache for multi-instance deployments where workers on
different hosts should share paid lookups. Expiry is delegated to Redis key TTLs.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Mapping

import redis

from lexagent.cache.tool_cache import cache_key
from lexagent.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RedisToolResultCache:
    """Tool cache storing JSON-encoded values under ``{prefix}:tool:{key}``.

    Each entry's hit count lives under ``{prefix}:tool_hits:{key}`` with the same TTL, so both
    expire together.
    """

    redis_url: str
    key_prefix: str

    def __post_init__(self) -> None:
        self._client = redis.Redis.from_url(self.redis_url, decode_responses=True)
        self._stats_key = f"{self.key_prefix}:tool_stats"
        self._locks_guard = threading.Lock()
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    def _key(self, tool_name: str, params: Mapping[str, Any] | None) -> str:
        return f"{self.key_prefix}:tool:{cache_key(tool_name, params)}"

    def _hits_key(self, key: str) -> str:
        return key.replace(f"{self.key_prefix}:tool:", f"{self.key_prefix}:tool_hits:", 1)

    def get(self, tool_name: str, params: Mapping[str, Any] | None) -> tuple[Any, bool]:
        key = self._key(tool_name, params)
        raw = self._client.get(key)
        if raw is None:
            self._client.hincrby(self._stats_key, "misses", 1)
            return None, False
        pipe = self._client.pipeline()
        # INCR keeps the TTL set by put().
        pipe.incr(self._hits_key(key))
        pipe.hincrby(self._stats_key, "hits", 1)
        hits, _ = pipe.execute()
        logger.info("Tool cache hit (redis)", extra={"key": key, "hits": hits})
        return json.loads(raw), True

    def put(self, tool_name: str, params: Mapping[str, Any] | None, value: Any, ttl: timedelta) -> None:
        key = self._key(tool_name, params)
        seconds = int(ttl.total_seconds())
        line = json.dumps(value, ensure_ascii=False, default=str)
        pipe = self._client.pipeline()
        pipe.setex(key, seconds, line)
        pipe.setex(self._hits_key(key), seconds, 0)
        pipe.execute()
        logger.info("Tool result cached (redis)", extra={"key": key, "ttl_days": ttl.days})

    def hit_count(self, tool_name: str, params: Mapping[str, Any] | None) -> int:
        raw = self._client.get(self._hits_key(self._key(tool_name, params)))
        return int(raw) if raw is not None else 0

    def get_or_compute(
        self,
        tool_name: str,
        params: Mapping[str, Any] | None,
        compute: Callable[[], tuple[Any, timedelta | None]],
    ) -> tuple[Any, bool]:
        # Serializes callers within this process only.
        key = self._key(tool_name, params)
        lock = self._acquire_lock(key)
        try:
            with lock:
                value, found = self.get(tool_name, params)
                if found:
                    return value, True
                value, ttl = compute()
                if ttl is not None:
                    self.put(tool_name, params, value, ttl)
                return value, False
        finally:
            self._release_lock(key)

    def evict(self, tool_name: str, params: Mapping[str, Any] | None) -> bool:
        key = self._key(tool_name, params)
        pipe = self._client.pipeline()
        pipe.delete(key)
        pipe.delete(self._hits_key(key))
        deleted, _ = pipe.execute()
        return bool(deleted)

    def size(self) -> int:
        return sum(1 for _ in self._client.scan_iter(match=f"{self.key_prefix}:tool:*"))

    def clear(self) -> None:
        pipe = self._client.pipeline()
        for pattern in (f"{self.key_prefix}:tool:*", f"{self.key_prefix}:tool_hits:*"):
            for k in self._client.scan_iter(match=pattern):
                pipe.delete(k)
        pipe.delete(self._stats_key)
        pipe.execute()

    def stats(self) -> dict[str, int]:
        raw = self._client.hgetall(self._stats_key)
        return {
            "entries": self.size(),
            "hits": int(raw.get("hits", 0)),
            "misses": int(raw.get("misses", 0)),
            "evictions": 0,
        }

    def _acquire_lock(self, key: str) -> threading.Lock:
        with self._locks_guard:
            held = self._locks.get(key)
            lock, users = held if held is not None else (threading.Lock(), 0)
            self._locks[key] = (lock, users + 1)
            return lock

    def _release_lock(self, key: str) -> None:
        with self._locks_guard:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)
