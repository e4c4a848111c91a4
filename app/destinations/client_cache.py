"""Per-factory transport client cache.

Keeps one client per addressing key so that messages sharing a target reuse
an established session. Bounded by max_size with least-recently-used
eviction, optionally expiring entries after ttl_seconds. Evicted, expired
and invalidated clients are handed to on_evict (typically their close()).

Thread safety:
    A single lock guards the entry map. Construction happens outside that
    lock under a per-key lock, so concurrent misses on the same key build one
    client while misses on other keys proceed in parallel.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, TypeVar

from destinations.logging import get_module_logger

logger = get_module_logger()

K = TypeVar("K", bound=Hashable)
C = TypeVar("C")


@dataclass
class _CacheEntry(Generic[C]):
    client: C
    created_at: float


class ClientCache(Generic[K, C]):
    """Thread-safe LRU cache of transport clients.

    Args:
        name: Cache name used in logs (typically the factory's type)
        max_size: Maximum number of cached clients
        ttl_seconds: Age after which a client is rebuilt (None = never)
        on_evict: Called with each client removed from the cache
        clock: Monotonic time source (injectable for tests)

    Example:
        cache = ClientCache("slack", max_size=32, ttl_seconds=3600,
                            on_evict=lambda client: client.close())
        session = cache.get_or_create(url_origin(url), requests.Session)
    """

    def __init__(
        self,
        name: str,
        max_size: int = 64,
        ttl_seconds: Optional[float] = None,
        on_evict: Optional[Callable[[C], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive or None")

        self.name = name
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._on_evict = on_evict
        self._clock = clock

        self._entries: "OrderedDict[K, _CacheEntry[C]]" = OrderedDict()
        self._key_locks: Dict[K, threading.Lock] = {}
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def get_or_create(self, key: K, builder: Callable[[], C]) -> C:
        """Return the cached client for key, building it on a miss.

        Args:
            key: Addressing identity of the client
            builder: Zero-argument callable creating a new client

        Returns:
            Cached or newly built client

        Raises:
            Exception: Whatever builder raises; nothing is cached in that case.
        """
        removed: List[C] = []
        try:
            with self._lock:
                client = self._lookup(key, removed)
                if client is not None:
                    return client
                key_lock = self._key_locks.setdefault(key, threading.Lock())

            with key_lock:
                with self._lock:
                    # Another thread may have built it while we waited
                    client = self._lookup(key, removed)
                    if client is not None:
                        return client
                    self._misses += 1

                client = builder()

                with self._lock:
                    self._entries[key] = _CacheEntry(client, self._clock())
                    self._entries.move_to_end(key)
                    while len(self._entries) > self.max_size:
                        old_key, old_entry = self._entries.popitem(last=False)
                        self._key_locks.pop(old_key, None)
                        self._evictions += 1
                        removed.append(old_entry.client)
                        logger.debug(
                            "client_cache_evicted",
                            cache=self.name,
                            reason="capacity",
                        )

                logger.debug("client_cache_built", cache=self.name)
                return client
        finally:
            self._release(removed)

    def invalidate(self, key: K, client: Optional[C] = None) -> bool:
        """Drop the client cached for key.

        Used when a transport failure shows the client is stale. When client
        is given, the entry is dropped only if it still holds that client, so
        a replacement built by another thread is left alone.

        Returns:
            True if a client was removed, False otherwise
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or (client is not None and entry.client is not client):
                return False
            del self._entries[key]
            self._key_locks.pop(key, None)
        logger.info("client_cache_invalidated", cache=self.name)
        self._release([entry.client])
        return True

    def clear(self) -> None:
        """Drop every cached client."""
        with self._lock:
            clients = [entry.client for entry in self._entries.values()]
            self._entries.clear()
            self._key_locks.clear()
        self._release(clients)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dict with size, max_size, hits, misses, evictions and expirations.
        """
        with self._lock:
            return {
                "name": self.name,
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "expirations": self._expirations,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def _lookup(self, key: K, removed: List[C]) -> Optional[C]:
        """Return a live cached client or None. Caller holds self._lock."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if (
            self.ttl_seconds is not None
            and self._clock() - entry.created_at >= self.ttl_seconds
        ):
            del self._entries[key]
            self._expirations += 1
            removed.append(entry.client)
            logger.debug("client_cache_evicted", cache=self.name, reason="ttl")
            return None

        self._entries.move_to_end(key)
        self._hits += 1
        return entry.client

    def _release(self, clients: List[C]) -> None:
        """Hand removed clients to on_evict outside the lock."""
        if self._on_evict is None:
            return
        for client in clients:
            try:
                self._on_evict(client)
            except Exception as e:
                logger.warning(
                    "client_cache_release_failed",
                    cache=self.name,
                    error=str(e),
                    exc_info=True,
                )
