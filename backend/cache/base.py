"""
Cache Store Contract

Narrow async key-value interface used by the resize gateway to store
resized artifacts. Implementations may keep entries in process memory or
on disk; callers only depend on this contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class CacheUnavailableError(Exception):
    """Raised when the backing store cannot be reached or written."""


class CacheStore(ABC):
    """
    Contract for artifact cache backends.

    Guarantees every implementation must keep:
    - get() after put() with the same key, before the TTL elapses, returns
      exactly the stored bytes
    - an expired entry is absent to every caller from the moment it expires
    - a reader never observes a partially written or partially evicted entry
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Return the artifact stored under key, or None if absent/expired."""

    @abstractmethod
    async def put(self, key: str, artifact: bytes, ttl: float) -> None:
        """Store artifact under key for ttl seconds."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove key. Returns True if an entry was removed."""

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns the number removed."""

    @abstractmethod
    async def clear(self) -> int:
        """Remove every entry. Returns the number removed."""

    @abstractmethod
    def stats(self) -> Dict[str, Any]:
        """Return backend statistics."""
