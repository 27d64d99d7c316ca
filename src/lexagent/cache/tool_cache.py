"""TTL cache for external tool results.

Entries are keyed by tool name plus a stable hash of the canonicalized parameters, so the same
logical call always lands on the same key regardless of parameter order. Expired entries are
evicted lazily on the next lookup; there is no background sweep.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Mapping, Protocol

from lexagent.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


def canonical_params(params: Mapping[str, Any] | None) -> str:
    """Serialize parameters deterministically (sorted keys, no whitespace, ``None`` dropped)."""

    cleaned = {k: v for k, v in (params or {}).items() if v is not None}
    return json.dumps(cleaned, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def cache_key(tool_name: str, params: Mapping[str, Any] | None) -> str:
    """Build ``tool_name:sha256(canonical params)``."""

    digest = hashlib.sha256(canonical_params(params).encode("utf-8")).hexdigest()
    return f"{tool_name}:{digest}"


@dataclass
class CacheEntry:
    """A cached tool result."""

    key: str
    value: Any
    expires_at: float
    hit_count: int = 0
    created_at: float = field(default_factory=time.time)

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ToolResultCache(Protocol):
    """Cache interface injected into the tool dispatcher."""

    def get(self, tool_name: str, params: Mapping[str, Any] | None) -> tuple[Any, bool]:
        """Return ``(value, True)`` on a live hit, ``(None, False)`` otherwise."""

    def put(self, tool_name: str, params: Mapping[str, Any] | None, value: Any, ttl: timedelta) -> None:
        """Store a value for ``ttl``."""

    def evict(self, tool_name: str, params: Mapping[str, Any] | None) -> bool:
        """Remove an entry; returns whether one existed."""

    def size(self) -> int:
        """Number of stored entries (may include not-yet-evicted expired ones)."""

    def clear(self) -> None:
        """Drop every entry."""

    def stats(self) -> dict[str, int]:
        """Counters for observability."""

    def get_or_compute(
        self,
        tool_name: str,
        params: Mapping[str, Any] | None,
        compute: Callable[[], tuple[Any, timedelta | None]],
    ) -> tuple[Any, bool]:
        """Return ``(value, cached)``; on a miss run ``compute`` and store its value if it returns a ttl."""


class InMemoryToolResultCache:
    """Process-wide, thread-safe in-memory cache.

    A short map lock guards the dict itself; per-key locks serialize ``get_or_compute`` for the
    same key without blocking unrelated keys while a slow external call runs.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or time.time
        self._entries: dict[str, CacheEntry] = {}
        self._map_lock = threading.Lock()
        self._key_locks: dict[str, tuple[threading.Lock, int]] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, tool_name: str, params: Mapping[str, Any] | None) -> tuple[Any, bool]:
        key = cache_key(tool_name, params)
        now = self._clock()
        with self._map_lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None, False
            if entry.is_expired(now):
                del self._entries[key]
                self._evictions += 1
                self._misses += 1
                logger.info("Tool cache entry expired", extra={"key": key})
                return None, False
            entry.hit_count += 1
            self._hits += 1
            hits = entry.hit_count
        logger.info("Tool cache hit", extra={"key": key, "hits": hits})
        return entry.value, True

    def put(self, tool_name: str, params: Mapping[str, Any] | None, value: Any, ttl: timedelta) -> None:
        key = cache_key(tool_name, params)
        expires_at = self._clock() + ttl.total_seconds()
        with self._map_lock:
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=expires_at, created_at=self._clock())
        logger.info("Tool result cached", extra={"key": key, "ttl_days": ttl.days})

    def get_or_compute(
        self,
        tool_name: str,
        params: Mapping[str, Any] | None,
        compute: Callable[[], tuple[Any, timedelta | None]],
    ) -> tuple[Any, bool]:
        """Return a cached value or compute and store it atomically per key.

        ``compute`` returns ``(value, ttl)``; a ``None`` ttl means "do not cache".

        Returns:
            ``(value, cached)`` where ``cached`` tells whether the value came from the cache.
        """

        value, found = self.get(tool_name, params)
        if found:
            return value, True

        key = cache_key(tool_name, params)
        lock = self._acquire_key_lock(key)
        try:
            with lock:
                # Another worker may have filled the key while we waited.
                value, found = self.get(tool_name, params)
                if found:
                    return value, True
                value, ttl = compute()
                if ttl is not None:
                    self.put(tool_name, params, value, ttl)
                return value, False
        finally:
            self._release_key_lock(key)

    def entry(self, tool_name: str, params: Mapping[str, Any] | None) -> CacheEntry | None:
        """Peek at an entry without counting a hit or evicting it."""

        with self._map_lock:
            return self._entries.get(cache_key(tool_name, params))

    def evict(self, tool_name: str, params: Mapping[str, Any] | None) -> bool:
        key = cache_key(tool_name, params)
        with self._map_lock:
            existed = self._entries.pop(key, None) is not None
            if existed:
                self._evictions += 1
        return existed

    def size(self) -> int:
        with self._map_lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._map_lock:
            self._entries.clear()

    def stats(self) -> dict[str, int]:
        with self._map_lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def pending_keys(self) -> int:
        """Number of keys with a computation in flight."""

        with self._map_lock:
            return len(self._key_locks)

    # Key locks are reference counted; the map holds only keys that a caller holds or waits on.
    def _acquire_key_lock(self, key: str) -> threading.Lock:
        with self._map_lock:
            held = self._key_locks.get(key)
            lock, users = held if held is not None else (threading.Lock(), 0)
            self._key_locks[key] = (lock, users + 1)
            return lock

    def _release_key_lock(self, key: str) -> None:
        with self._map_lock:
            lock, users = self._key_locks[key]
            if users <= 1:
                del self._key_locks[key]
            else:
                self._key_locks[key] = (lock, users - 1)
