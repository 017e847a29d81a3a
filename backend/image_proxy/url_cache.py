"""
Signed URL Cache

In-memory cache of CMS signed asset URLs, keyed by block id.

Features:
- TTL per entry (expires before the upstream signature does)
- LRU eviction when max entries exceeded
- Thread-safe operations with Lock
- Injectable clock for tests

Built once at startup and handed to the resolver; there is no module-level
instance.
"""

import time
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Callable, Dict, Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A resolved signed URL for one block."""
    block_id: str
    signed_url: str
    expires_at: float                # Unix timestamp after which the URL is re-resolved
    created_at: float
    last_accessed: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "block_id": self.block_id,
            "created_at": datetime.fromtimestamp(self.created_at).isoformat(),
            "expires_at": datetime.fromtimestamp(self.expires_at).isoformat(),
        }


class SignedUrlCache:
    """
    TTL + LRU map from block id to signed URL.

    Writes are last-writer-wins: two requests resolving the same block
    concurrently both store their result and the later one stays.
    """

    def __init__(
        self,
        ttl_seconds: float = 55 * 60,
        max_entries: int = 5000,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            ttl_seconds: Lifetime of a cached URL
            max_entries: Maximum number of entries before LRU eviction
            clock: Returns the current Unix time
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._store: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = Lock()
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._hits = 0
        self._misses = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, block_id: str) -> Optional[CacheEntry]:
        """
        Get the live entry for a block.

        Returns:
            CacheEntry if present and not expired, None otherwise
        """
        with self._lock:
            now = self._clock()
            entry = self._store.get(block_id)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(now):
                del self._store[block_id]
                self._misses += 1
                logger.debug(f"[UrlCache] Expired: {block_id}")
                return None

            entry.last_accessed = now
            self._store.move_to_end(block_id)
            self._hits += 1
            return entry

    def now(self) -> float:
        return self._clock()

    def set(self, block_id: str, signed_url: str, resolved_at: Optional[float] = None) -> CacheEntry:
        """
        Store a freshly resolved URL, replacing any previous entry.

        Args:
            resolved_at: When the lookup started; expiry counts from there
        """
        with self._lock:
            now = self._clock() if resolved_at is None else resolved_at
            if block_id in self._store:
                del self._store[block_id]

            while len(self._store) >= self._max_entries:
                evicted_id, _ = self._store.popitem(last=False)
                logger.info(f"[UrlCache] LRU evicted: {evicted_id}")

            entry = CacheEntry(
                block_id=block_id,
                signed_url=signed_url,
                expires_at=now + self._ttl,
                created_at=now,
                last_accessed=now,
            )
            self._store[block_id] = entry
            return entry

    def delete(self, block_id: str) -> bool:
        with self._lock:
            if block_id in self._store:
                del self._store[block_id]
                return True
            return False

    def clear(self) -> int:
        """
        Drop every entry.

        Returns:
            Number of entries deleted
        """
        with self._lock:
            count = len(self._store)
            self._store.clear()
            logger.info(f"[UrlCache] Cleared all {count} entries")
            return count

    def cleanup_expired(self) -> int:
        """
        Remove expired entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, v in self._store.items() if v.is_expired(now)]
            for k in expired:
                del self._store[k]
            if expired:
                logger.info(f"[UrlCache] Cleaned up {len(expired)} expired entries")
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, block_id: str) -> bool:
        with self._lock:
            return block_id in self._store

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "total_entries": len(self._store),
                "max_entries": self._max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups, 3) if lookups else 0.0,
                "ttl_minutes": round(self._ttl / 60, 1),
            }
