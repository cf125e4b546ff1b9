"""
Memory Store Implementation

Thread-safe in-memory storage for resized image artifacts.

Features:
- Thread-safe operations with Lock
- TTL-based expiration (checked on every read)
- LRU eviction when max entries or max bytes exceeded
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Optional

from .base import CacheStore


@dataclass(frozen=True)
class CacheEntry:
    """
    Cache entry data structure

    Entries are immutable; replacing a key stores a new entry.
    """
    key: str                         # Fingerprint of the request
    artifact: bytes                  # Resized image payload
    created_at: float                # Unix timestamp when created
    ttl: float                       # Time to live in seconds

    def is_expired(self, now: float) -> bool:
        """Check if this entry has expired at the given time"""
        return now >= self.created_at + self.ttl

    @property
    def size_bytes(self) -> int:
        return len(self.artifact)


class MemoryStore(CacheStore):
    """
    Thread-safe in-memory artifact store

    Features:
    - Maximum entry/byte limits with LRU eviction
    - TTL-based expiration
    - Thread-safe with Lock
    """

    def __init__(
        self,
        max_entries: int = 1000,
        max_size_bytes: int = 500 * 1024 * 1024,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize memory store

        Args:
            max_entries: Maximum number of entries to keep
            max_size_bytes: Maximum total artifact bytes to keep
            clock: Time source in seconds (injectable for tests)
        """
        # Insertion order doubles as LRU order (oldest first)
        self._store: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = Lock()
        self._max_entries = max_entries
        self._max_size_bytes = max_size_bytes
        self._total_bytes = 0
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    async def get(self, key: str) -> Optional[bytes]:
        """
        Get artifact by key

        Returns:
            Artifact bytes if found and not expired, None otherwise
        """
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock()):
                self._remove(key)
                self._misses += 1
                return None
            self._store.move_to_end(key)
            self._hits += 1
            return entry.artifact

    async def put(self, key: str, artifact: bytes, ttl: float) -> None:
        """
        Store artifact

        Args:
            key: Cache key
            artifact: Artifact bytes
            ttl: Time to live in seconds
        """
        artifact = bytes(artifact)
        if len(artifact) > self._max_size_bytes:
            return

        with self._lock:
            # Clean up expired entries first
            self._cleanup_expired()

            if key in self._store:
                self._remove(key)

            # Evict least recently used until the new entry fits
            while self._store and (
                len(self._store) >= self._max_entries
                or self._total_bytes + len(artifact) > self._max_size_bytes
            ):
                oldest_key = next(iter(self._store))
                self._remove(oldest_key)
                self._evictions += 1

            self._store[key] = CacheEntry(
                key=key,
                artifact=artifact,
                created_at=self._clock(),
                ttl=ttl,
            )
            self._total_bytes += len(artifact)

    async def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._store:
                self._remove(key)
                return True
            return False

    async def cleanup_expired(self) -> int:
        with self._lock:
            return self._cleanup_expired()

    async def clear(self) -> int:
        """
        Clear all cache entries

        Returns:
            Number of entries deleted
        """
        with self._lock:
            count = len(self._store)
            self._store.clear()
            self._total_bytes = 0
            return count

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "backend": "memory",
                "total_entries": len(self._store),
                "max_entries": self._max_entries,
                "total_size_bytes": self._total_bytes,
                "total_size_mb": round(self._total_bytes / (1024 * 1024), 2),
                "max_size_mb": self._max_size_bytes // (1024 * 1024),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups, 3) if lookups else 0.0,
                "evictions": self._evictions,
            }

    def _remove(self, key: str) -> None:
        """Remove entry (internal, assumes lock held)"""
        entry = self._store.pop(key)
        self._total_bytes -= entry.size_bytes

    def _cleanup_expired(self) -> int:
        """
        Remove expired entries (internal, assumes lock held)

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [
            k for k, v in self._store.items()
            if v.is_expired(now)
        ]
        for k in expired:
            self._remove(k)
        return len(expired)
