"""
File Cache Store

Durable directory-backed artifact cache with:
- LRU (Least Recently Used) eviction strategy
- Per-entry TTL (Time To Live)
- Maximum cache size / entry count limits
- Atomic writes (temp file + rename), so readers never see partial data
"""

import asyncio
import hashlib
import json
import logging
import os
import tempfile
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .base import CacheStore, CacheUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class FileEntryMeta:
    """Metadata for a cached artifact."""
    key: str
    size_bytes: int
    created_at: float
    ttl: float
    last_accessed: float

    def is_expired(self, now: float) -> bool:
        return now >= self.created_at + self.ttl


class FileCacheStore(CacheStore):
    """
    Manages a file-based artifact cache with LRU eviction.

    Cache structure:
    cache_dir/
    ├── artifacts/
    │   ├── 3f9a...c1.bin
    │   └── ...
    └── metadata.json
    """

    def __init__(
        self,
        cache_dir: str = "./resize_cache",
        max_cache_size_mb: int = 500,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.time,
    ):
        self.cache_dir = Path(cache_dir)
        self.artifacts_dir = self.cache_dir / "artifacts"
        self.metadata_file = self.cache_dir / "metadata.json"

        self.max_cache_size_bytes = max_cache_size_mb * 1024 * 1024
        self.max_entries = max_entries
        self._clock = clock

        # In-memory metadata index, keyed by file hash
        self._metadata: Dict[str, FileEntryMeta] = {}
        self._lock = asyncio.Lock()

        self._init_cache_dir()
        self._load_metadata()

    def _init_cache_dir(self) -> None:
        """Create cache directories if they don't exist."""
        try:
            self.artifacts_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheUnavailableError(f"Cannot create cache directory {self.cache_dir}: {e}") from e
        logger.info(f"[ResizeCache] Cache directory: {self.cache_dir}")

    def _load_metadata(self) -> None:
        """Load metadata from disk, dropping entries whose files are gone."""
        if not self.metadata_file.exists():
            self._metadata = {}
            return
        try:
            with open(self.metadata_file, "r") as f:
                data = json.load(f)
            self._metadata = {
                k: FileEntryMeta(**v) for k, v in data.items()
                if (self.artifacts_dir / f"{k}.bin").exists()
            }
            logger.info(f"[ResizeCache] Loaded {len(self._metadata)} cached entries")
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"[ResizeCache] Failed to load metadata, starting empty: {e}")
            self._metadata = {}

    def _save_metadata(self) -> None:
        """Save metadata to disk atomically."""
        data = {k: asdict(v) for k, v in self._metadata.items()}
        self._atomic_write(self.metadata_file, json.dumps(data, indent=2).encode())

    def _atomic_write(self, path: Path, data: bytes) -> None:
        """Write to a temp file in the same directory, then rename over path."""
        try:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise CacheUnavailableError(f"Cache write failed for {path.name}: {e}") from e

    @staticmethod
    def _key_to_hash(key: str) -> str:
        """Convert a cache key to a safe filename."""
        return hashlib.sha256(key.encode()).hexdigest()

    def _get_cache_path(self, file_hash: str) -> Path:
        return self.artifacts_dir / f"{file_hash}.bin"

    def _get_total_cache_size(self) -> int:
        return sum(entry.size_bytes for entry in self._metadata.values())

    async def get(self, key: str) -> Optional[bytes]:
        """
        Get cached artifact by key.

        Returns:
            Artifact bytes if cached and valid, None otherwise.
        """
        file_hash = self._key_to_hash(key)

        async with self._lock:
            entry = self._metadata.get(file_hash)
            if entry is None:
                return None

            now = self._clock()
            if entry.is_expired(now):
                logger.debug(f"[ResizeCache] Cache expired for: {key[:24]}...")
                self._remove_entry(file_hash)
                self._save_metadata()
                return None

            cache_path = self._get_cache_path(file_hash)
            try:
                with open(cache_path, "rb") as f:
                    data = f.read()
            except FileNotFoundError:
                logger.warning(f"[ResizeCache] Cache file missing: {cache_path}")
                self._remove_entry(file_hash)
                self._save_metadata()
                return None
            except OSError as e:
                raise CacheUnavailableError(f"Cache read failed: {e}") from e

            # LRU tracking, persisted with the next metadata write
            entry.last_accessed = now
            return data

    async def put(self, key: str, artifact: bytes, ttl: float) -> None:
        """
        Cache an artifact.

        Args:
            key: Cache key (request fingerprint)
            artifact: Artifact bytes
            ttl: Time to live in seconds
        """
        artifact = bytes(artifact)
        if len(artifact) > self.max_cache_size_bytes:
            logger.warning(f"[ResizeCache] Artifact too large to cache ({len(artifact)} bytes)")
            return

        file_hash = self._key_to_hash(key)

        async with self._lock:
            self._cleanup_expired()
            self._metadata.pop(file_hash, None)
            self._ensure_space(len(artifact))

            self._atomic_write(self._get_cache_path(file_hash), artifact)

            now = self._clock()
            self._metadata[file_hash] = FileEntryMeta(
                key=key,
                size_bytes=len(artifact),
                created_at=now,
                ttl=ttl,
                last_accessed=now,
            )
            self._save_metadata()
            logger.debug(f"[ResizeCache] Cached: {key[:24]}... ({len(artifact)} bytes)")

    async def delete(self, key: str) -> bool:
        file_hash = self._key_to_hash(key)
        async with self._lock:
            if file_hash not in self._metadata:
                return False
            self._remove_entry(file_hash)
            self._save_metadata()
            return True

    def _remove_entry(self, file_hash: str) -> None:
        """Remove a cache entry (file and metadata). Assumes lock held."""
        entry = self._metadata.pop(file_hash, None)
        if entry is None:
            return
        try:
            self._get_cache_path(file_hash).unlink(missing_ok=True)
            logger.debug(f"[ResizeCache] Removed: {entry.key[:24]}...")
        except OSError as e:
            logger.error(f"[ResizeCache] Failed to remove file: {e}")

    def _ensure_space(self, needed_bytes: int) -> None:
        """
        Ensure there's room for needed_bytes using LRU eviction.
        """
        current_size = self._get_total_cache_size()
        target_size = self.max_cache_size_bytes - needed_bytes

        # Sort by last_accessed (oldest first)
        sorted_entries = sorted(
            self._metadata.items(),
            key=lambda x: x[1].last_accessed
        )

        for file_hash, entry in sorted_entries:
            if current_size <= target_size and len(self._metadata) < self.max_entries:
                break
            current_size -= entry.size_bytes
            self._remove_entry(file_hash)
            logger.info(f"[ResizeCache] LRU evicted: {entry.key[:24]}...")

    def _cleanup_expired(self) -> int:
        now = self._clock()
        expired = [
            file_hash
            for file_hash, entry in self._metadata.items()
            if entry.is_expired(now)
        ]
        for file_hash in expired:
            self._remove_entry(file_hash)
        return len(expired)

    async def cleanup_expired(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed.
        """
        async with self._lock:
            removed = self._cleanup_expired()
            if removed:
                self._save_metadata()
                logger.info(f"[ResizeCache] Cleaned up {removed} expired entries")
            return removed

    async def clear(self) -> int:
        """
        Clear all cached artifacts.

        Returns:
            Number of entries removed.
        """
        async with self._lock:
            count = len(self._metadata)
            for file_hash in list(self._metadata):
                self._remove_entry(file_hash)
            self._save_metadata()
            logger.info(f"[ResizeCache] Cleared all {count} entries")
            return count

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_size = self._get_total_cache_size()
        return {
            "backend": "file",
            "cache_dir": str(self.cache_dir),
            "total_entries": len(self._metadata),
            "max_entries": self.max_entries,
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "max_size_mb": self.max_cache_size_bytes // (1024 * 1024),
            "usage_percent": round(total_size / self.max_cache_size_bytes * 100, 1) if self.max_cache_size_bytes > 0 else 0,
        }
