"""Unit tests for ClientCache."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from destinations.client_cache import ClientCache


@pytest.mark.unit
class TestClientCacheBasics:
    """Tests for cache hits, misses and construction."""

    def test_invalid_configuration(self):
        """Test max_size and ttl_seconds are validated."""
        with pytest.raises(ValueError):
            ClientCache("test", max_size=0)
        with pytest.raises(ValueError):
            ClientCache("test", ttl_seconds=0)

    def test_same_key_reuses_client(self):
        """Test a second lookup for the same key returns the same client."""
        cache = ClientCache("test")
        builder = MagicMock(side_effect=lambda: object())

        first = cache.get_or_create("https://a.example.com", builder)
        second = cache.get_or_create("https://a.example.com", builder)

        assert first is second
        assert builder.call_count == 1
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1

    def test_different_keys_build_separate_clients(self):
        """Test distinct keys get distinct clients."""
        cache = ClientCache("test")

        first = cache.get_or_create("a", object)
        second = cache.get_or_create("b", object)

        assert first is not second
        assert len(cache) == 2

    def test_builder_failure_caches_nothing(self):
        """Test a failing builder leaves the cache unchanged."""
        cache = ClientCache("test")

        with pytest.raises(RuntimeError):
            cache.get_or_create("a", MagicMock(side_effect=RuntimeError("boom")))

        assert "a" not in cache
        assert cache.get_or_create("a", lambda: "client") == "client"


@pytest.mark.unit
class TestClientCacheEviction:
    """Tests for LRU, TTL and explicit eviction."""

    def test_lru_eviction_closes_client(self):
        """Test the least recently used client is evicted and released."""
        on_evict = MagicMock()
        cache = ClientCache("test", max_size=2, on_evict=on_evict)
        cache.get_or_create("a", lambda: "client-a")
        cache.get_or_create("b", lambda: "client-b")
        cache.get_or_create("a", lambda: "unused")  # a becomes most recent

        cache.get_or_create("c", lambda: "client-c")

        assert "b" not in cache
        assert "a" in cache
        on_evict.assert_called_once_with("client-b")
        assert cache.get_stats()["evictions"] == 1

    def test_ttl_expiry_rebuilds_client(self, fake_clock):
        """Test an expired client is released and rebuilt."""
        on_evict = MagicMock()
        cache = ClientCache("test", ttl_seconds=60, on_evict=on_evict, clock=fake_clock)
        first = cache.get_or_create("a", object)

        fake_clock.advance(59)
        assert cache.get_or_create("a", object) is first

        fake_clock.advance(1)
        second = cache.get_or_create("a", object)

        assert second is not first
        on_evict.assert_called_once_with(first)
        assert cache.get_stats()["expirations"] == 1

    def test_invalidate(self):
        """Test invalidate() drops and releases one client."""
        on_evict = MagicMock()
        cache = ClientCache("test", on_evict=on_evict)
        cache.get_or_create("a", lambda: "client-a")

        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        on_evict.assert_called_once_with("client-a")

    def test_invalidate_keeps_replacement_client(self):
        """Test invalidating an already replaced client leaves the new one."""
        on_evict = MagicMock()
        cache = ClientCache("test", on_evict=on_evict)
        failed = cache.get_or_create("a", object)
        assert cache.invalidate("a", failed) is True
        replacement = cache.get_or_create("a", object)

        # A second thread reporting the same failed client arrives late
        assert cache.invalidate("a", failed) is False

        assert cache.get_or_create("a", object) is replacement
        on_evict.assert_called_once_with(failed)

    def test_clear_releases_every_client(self):
        """Test clear() releases all cached clients."""
        on_evict = MagicMock()
        cache = ClientCache("test", on_evict=on_evict)
        cache.get_or_create("a", lambda: "client-a")
        cache.get_or_create("b", lambda: "client-b")

        cache.clear()

        assert len(cache) == 0
        assert on_evict.call_count == 2

    def test_release_failure_is_logged_not_raised(self):
        """Test a failing on_evict callback does not break eviction."""
        cache = ClientCache(
            "test", max_size=1, on_evict=MagicMock(side_effect=OSError("closed"))
        )
        cache.get_or_create("a", lambda: "client-a")

        assert cache.get_or_create("b", lambda: "client-b") == "client-b"
        assert "a" not in cache


@pytest.mark.unit
class TestClientCacheConcurrency:
    """Tests for concurrent access."""

    def test_concurrent_misses_build_one_client(self):
        """Test simultaneous misses on one key construct a single client."""
        cache = ClientCache("test")
        builds = []
        start = threading.Event()

        def builder():
            builds.append(1)
            time.sleep(0.05)
            return object()

        def lookup():
            start.wait()
            return cache.get_or_create("shared", builder)

        with ThreadPoolExecutor(max_workers=16) as executor:
            futures = [executor.submit(lookup) for _ in range(16)]
            start.set()
            clients = [f.result() for f in futures]

        assert len(builds) == 1
        assert all(client is clients[0] for client in clients)

    def test_slow_build_does_not_block_other_keys(self):
        """Test construction for one key does not hold up other keys."""
        cache = ClientCache("test")
        release = threading.Event()

        def slow_builder():
            release.wait(timeout=5)
            return "slow"

        with ThreadPoolExecutor(max_workers=2) as executor:
            slow = executor.submit(cache.get_or_create, "slow", slow_builder)
            fast = executor.submit(cache.get_or_create, "fast", lambda: "fast")

            assert fast.result(timeout=2) == "fast"
            release.set()
            assert slow.result(timeout=2) == "slow"
