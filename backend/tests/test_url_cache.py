"""
Signed URL cache tests

Run:
    pytest backend/tests/test_url_cache.py -v
"""

import pytest

from conftest import FakeClock
from image_proxy.url_cache import SignedUrlCache


class TestGetSet:

    def test_set_then_get_returns_url(self, url_cache, clock):
        entry = url_cache.set("abc123", "https://files.test/a.png")

        assert entry.expires_at == clock.now + 55 * 60
        cached = url_cache.get("abc123")
        assert cached is not None
        assert cached.signed_url == "https://files.test/a.png"

    def test_missing_block_returns_none(self, url_cache):
        assert url_cache.get("nope") is None

    def test_entry_expires_after_ttl(self, url_cache, clock):
        url_cache.set("abc123", "https://files.test/a.png")

        clock.advance(55 * 60 - 1)
        assert url_cache.get("abc123") is not None

        clock.advance(1)
        assert url_cache.get("abc123") is None
        assert "abc123" not in url_cache

    def test_set_overwrites_last_writer_wins(self, url_cache):
        url_cache.set("abc123", "https://files.test/first.png")
        url_cache.set("abc123", "https://files.test/second.png")

        assert url_cache.get("abc123").signed_url == "https://files.test/second.png"
        assert len(url_cache) == 1

    def test_resolved_at_sets_expiry_origin(self, url_cache, clock):
        started = clock.now
        clock.advance(30)
        entry = url_cache.set("abc123", "https://files.test/a.png", resolved_at=started)

        assert entry.expires_at == started + 55 * 60
        clock.advance(55 * 60 - 30)
        assert url_cache.get("abc123") is None

    def test_overwrite_refreshes_expiry(self, url_cache, clock):
        url_cache.set("abc123", "https://files.test/a.png")
        clock.advance(50 * 60)
        entry = url_cache.set("abc123", "https://files.test/b.png")

        assert entry.expires_at == clock.now + 55 * 60


class TestEviction:

    def test_lru_eviction_at_capacity(self):
        cache = SignedUrlCache(ttl_seconds=60, max_entries=2, clock=FakeClock())
        cache.set("a", "https://files.test/a")
        cache.set("b", "https://files.test/b")
        cache.get("a")  # b is now least recently used
        cache.set("c", "https://files.test/c")

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache

    def test_cleanup_expired(self, url_cache, clock):
        url_cache.set("old", "https://files.test/old")
        clock.advance(30 * 60)
        url_cache.set("new", "https://files.test/new")
        clock.advance(30 * 60)

        assert url_cache.cleanup_expired() == 1
        assert "old" not in url_cache
        assert "new" in url_cache

    def test_delete_and_clear(self, url_cache):
        url_cache.set("a", "https://files.test/a")
        url_cache.set("b", "https://files.test/b")

        assert url_cache.delete("a") is True
        assert url_cache.delete("a") is False
        assert url_cache.clear() == 1
        assert len(url_cache) == 0

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            SignedUrlCache(max_entries=0)


class TestStats:

    def test_stats_counts_hits_and_misses(self, url_cache):
        url_cache.get("abc123")
        url_cache.set("abc123", "https://files.test/a.png")
        url_cache.get("abc123")
        url_cache.get("abc123")

        stats = url_cache.stats()
        assert stats["total_entries"] == 1
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["hit_rate"] == pytest.approx(0.667)
        assert stats["ttl_minutes"] == 55.0
