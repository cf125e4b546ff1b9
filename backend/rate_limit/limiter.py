"""
Fixed Window Rate Limiter

Per-client request budget over a fixed time window.

Each client gets a window that starts with its first request. Requests are
counted inside the window; once the window has elapsed the next request
starts a fresh one. State is sharded across a fixed set of locks so
concurrent requests from the same client are serialized while unrelated
clients rarely contend.
"""

import logging
import time
import zlib
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# Key family for rate limit windows; artifact cache keys use "img:"
RATE_LIMIT_KEY_PREFIX = "ratelimit:"

DEFAULT_SHARDS = 64
PRUNE_EVERY_CALLS = 1024


def rate_limit_key(client_id: str) -> str:
    """Storage key for a client's window."""
    return f"{RATE_LIMIT_KEY_PREFIX}{client_id}"


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate limit check."""
    permitted: bool
    retry_after: Optional[float] = None    # Seconds until the window resets (denials only)
    remaining: int = 0                     # Requests left in the current window


@dataclass
class RateLimitWindow:
    """Active window state for one client."""
    count: int
    window_start: float


class _Shard:
    __slots__ = ("lock", "windows")

    def __init__(self) -> None:
        self.lock = Lock()
        self.windows: Dict[str, RateLimitWindow] = {}


class FixedWindowRateLimiter:
    """
    Fixed window rate limiter

    Usage:
        limiter = FixedWindowRateLimiter(limit=10, window_seconds=60)
        decision = limiter.allow("203.0.113.7")
        if not decision.permitted:
            ...  # reject, hint decision.retry_after
    """

    def __init__(
        self,
        limit: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
        shards: int = DEFAULT_SHARDS,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._shards: List[_Shard] = [_Shard() for _ in range(max(1, shards))]
        self._stats_lock = Lock()
        self._calls = 0
        self._denied = 0

    def _shard_for(self, key: str) -> _Shard:
        return self._shards[zlib.crc32(key.encode()) % len(self._shards)]

    def allow(self, client_id: str) -> RateLimitDecision:
        """
        Count a request from client_id and decide whether to admit it.

        Denial is a normal outcome, not an error.
        """
        key = rate_limit_key(client_id)
        shard = self._shard_for(key)

        with shard.lock:
            now = self._clock()
            window = shard.windows.get(key)

            if window is None or now - window.window_start >= self.window_seconds:
                window = RateLimitWindow(count=1, window_start=now)
                shard.windows[key] = window
            else:
                window.count += 1

            if window.count <= self.limit:
                decision = RateLimitDecision(
                    permitted=True,
                    remaining=self.limit - window.count,
                )
            else:
                retry_after = max(0.0, window.window_start + self.window_seconds - now)
                decision = RateLimitDecision(permitted=False, retry_after=retry_after)

        with self._stats_lock:
            self._calls += 1
            calls = self._calls
            if not decision.permitted:
                self._denied += 1

        if not decision.permitted:
            logger.info(
                f"[RateLimit] Denied {client_id}: limit {self.limit}/{self.window_seconds:g}s, "
                f"retry after {decision.retry_after:.1f}s"
            )
        if calls % PRUNE_EVERY_CALLS == 0:
            self.prune_expired()

        return decision

    def prune_expired(self) -> int:
        """
        Drop windows that have already elapsed.

        Returns:
            Number of windows removed
        """
        removed = 0
        for shard in self._shards:
            with shard.lock:
                now = self._clock()
                stale = [
                    k for k, w in shard.windows.items()
                    if now - w.window_start >= self.window_seconds
                ]
                for k in stale:
                    del shard.windows[k]
                removed += len(stale)
        if removed:
            logger.debug(f"[RateLimit] Pruned {removed} stale windows")
        return removed

    def reset(self) -> None:
        """Forget every client's window."""
        for shard in self._shards:
            with shard.lock:
                shard.windows.clear()

    def stats(self) -> Dict[str, Any]:
        active = 0
        for shard in self._shards:
            with shard.lock:
                active += len(shard.windows)
        return {
            "limit": self.limit,
            "window_seconds": self.window_seconds,
            "tracked_clients": active,
            "total_checks": self._calls,
            "total_denied": self._denied,
        }
