"""
Artifact Cache Module

Content-addressed storage for resized images.

Backends:
- MemoryStore: thread-safe in-process store (default)
- FileCacheStore: durable directory store that survives restarts
"""

from .base import CacheStore, CacheUnavailableError
from .memory_store import MemoryStore, CacheEntry
from .file_store import FileCacheStore

__all__ = [
    "CacheStore",
    "CacheUnavailableError",
    "MemoryStore",
    "CacheEntry",
    "FileCacheStore",
]
