"""
Handle cache for reusing database handles across bindings.

The cache is an explicit object owned by the caller. Nothing here keeps
module-level state.
"""

import hashlib
import json
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from typing import Any, Generic, TypeVar

from recordql.logging import get_logger

logger = get_logger(__name__)

H = TypeVar("H")


def compute_config_hash(config: Mapping[str, Any]) -> str:
    """
    Stable key for a handle configuration.

    Equal configurations hash equally regardless of key order.
    """
    payload = json.dumps(config, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(payload.encode()).hexdigest()


class HandleCache(Generic[H]):
    """
    LRU cache of live handles with TTL expiry and health checks.

    Expired entries, entries failing ``health_check`` and entries pushed out
    by the capacity bound are passed to ``close`` before being dropped.

    Usage:
        cache = HandleCache(health_check=ping, close=lambda c: c.close())
        conn = cache.get_or_create({"url": url}, lambda: engine.connect())
    """

    def __init__(
        self,
        max_size: int = 100,
        ttl_seconds: float = 1800,
        health_check: Callable[[H], bool] | None = None,
        close: Callable[[H], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the cache.

        Args:
            max_size: Maximum number of cached handles
            ttl_seconds: Idle lifetime of an entry (default 30 minutes)
            health_check: Returns False for handles that must be discarded
            close: Releases a handle that leaves the cache
            clock: Time source, injectable for tests
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._health_check = health_check
        self._close = close
        self._clock = clock
        self._entries: OrderedDict[str, tuple[H, float]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> H | None:
        """
        Get a cached handle.

        Returns None if not cached, expired or unhealthy.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            handle, last_used = entry
            if self._clock() - last_used > self.ttl_seconds:
                self._discard(key, "expired")
                return None
            if self._health_check is not None and not self._health_check(handle):
                self._discard(key, "unhealthy")
                return None
            self._entries[key] = (handle, self._clock())
            self._entries.move_to_end(key)
            return handle

    def put(self, key: str, handle: H) -> None:
        """Cache a handle, evicting the least recently used one if full."""
        with self._lock:
            if key in self._entries:
                existing, _ = self._entries[key]
                if existing is not handle:
                    self._discard(key, "replaced")
            self._entries[key] = (handle, self._clock())
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                oldest = next(iter(self._entries))
                self._discard(oldest, "evicted")

    def get_or_create(
        self,
        config: Mapping[str, Any],
        factory: Callable[[], H],
    ) -> H:
        """
        Get the handle for ``config`` or create and cache a new one.

        Args:
            config: Handle configuration, hashed into the cache key
            factory: Creates a handle on a miss
        """
        key = compute_config_hash(config)
        handle = self.get(key)
        if handle is not None:
            return handle
        handle = factory()
        self.put(key, handle)
        return handle

    def invalidate(self, key: str) -> None:
        with self._lock:
            if key in self._entries:
                self._discard(key, "invalidated")

    def evict_stale(self) -> int:
        """Drop every expired entry. Returns the number dropped."""
        with self._lock:
            now = self._clock()
            stale = [k for k, (_, used) in self._entries.items() if now - used > self.ttl_seconds]
            for key in stale:
                self._discard(key, "expired")
            return len(stale)

    def close(self) -> None:
        """Close and drop every handle."""
        with self._lock:
            for key in list(self._entries):
                self._discard(key, "closed")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _discard(self, key: str, reason: str) -> None:
        handle, _ = self._entries.pop(key)
        logger.debug("Dropping cached handle", reason=reason, cache_key=key[:12])
        if self._close is not None:
            try:
                self._close(handle)
            except Exception:
                logger.exception("Failed to close cached handle", cache_key=key[:12])
