"""
Resize Request Handler

Orchestrates a single resize request:

    Received -> Validated -> RateChecked -> CacheChecked
        -> CacheHit -> Responded
        -> CacheMiss -> Resized -> Stored -> Responded

Any step may end in an error. Only the rate limiter (RateChecked) and the
cache (Stored) are mutated; a failed resize never writes to the cache.
"""

import asyncio
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

from cache import CacheStore, CacheUnavailableError
from rate_limit import FixedWindowRateLimiter

from .engine import DEFAULT_OPTIONS, ResizedImage, ResizeEngine, ResizeOptions
from .errors import (
    InternalError,
    InvalidInputError,
    RateLimitedError,
    ResizeGatewayError,
    ResizeTimeoutError,
)
from .fingerprint import fingerprint
from .payload import sniff_mime_type

logger = logging.getLogger(__name__)

# Shared rate limit bucket for callers with no network identity
UNKNOWN_CLIENT = "unknown"


@dataclass
class ResizeRequest:
    """A single resize call."""
    source_image: bytes
    target_width: int
    target_height: int
    client_id: str = UNKNOWN_CLIENT
    options: ResizeOptions = DEFAULT_OPTIONS


@dataclass
class ResizePolicy:
    """Limits and cache policy applied by the handler."""
    max_dimension: int = 2000
    cache_ttl: float = 7 * 24 * 60 * 60                 # 7 days
    resize_timeout: Optional[float] = 10.0              # Seconds, None disables
    max_payload_bytes: int = 10 * 1024 * 1024


@dataclass
class ResizeResult:
    """Artifact returned to the caller."""
    artifact: bytes
    mime_type: str
    cache_hit: bool
    key: str = field(repr=False, default="")


class ResizeHandler:
    """
    Validates, rate limits, deduplicates and resizes image requests.

    Usage:
        handler = ResizeHandler(MemoryStore(), FixedWindowRateLimiter())
        result = await handler.handle(ResizeRequest(png_bytes, 64, 64, "203.0.113.7"))
    """

    def __init__(
        self,
        cache: CacheStore,
        rate_limiter: FixedWindowRateLimiter,
        engine: Optional[ResizeEngine] = None,
        policy: Optional[ResizePolicy] = None,
        executor: Optional[Executor] = None,
        max_workers: int = 4,
    ):
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.engine = engine or ResizeEngine()
        self.policy = policy or ResizePolicy()

        # Resizing is CPU-bound; run it off the event loop
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="resize-worker",
        )

    async def handle(self, request: ResizeRequest) -> ResizeResult:
        """
        Process one request.

        Raises:
            InvalidInputError: payload empty/too large or dimensions out of range
            RateLimitedError: client budget exhausted
            ResizeError: decode failure, unsupported format or timeout
            InternalError: unexpected failure
        """
        self.validate(request)

        decision = self.rate_limiter.allow(request.client_id)
        if not decision.permitted:
            raise RateLimitedError(decision.retry_after)

        key = fingerprint(
            request.source_image,
            request.target_width,
            request.target_height,
            request.options,
        )
        cached = await self._cache_get(key)

        if cached is not None:
            logger.debug(f"[ResizeHandler] Cache hit: {key[:20]}... for {request.client_id}")
            return ResizeResult(
                artifact=cached,
                mime_type=sniff_mime_type(cached) or "application/octet-stream",
                cache_hit=True,
                key=key,
            )

        try:
            resized = await self._resize(request)
        except ResizeGatewayError as e:
            logger.info(f"[ResizeHandler] Resize failed for {request.client_id}: {e}")
            raise

        await self._cache_put(key, resized.data)

        logger.info(
            f"[ResizeHandler] Resized {request.target_width}x{request.target_height} "
            f"{resized.format} for {request.client_id} ({len(resized.data)} bytes)"
        )
        return ResizeResult(
            artifact=resized.data,
            mime_type=resized.mime_type,
            cache_hit=False,
            key=key,
        )

    def validate(self, request: ResizeRequest) -> None:
        """Reject malformed requests before any rate limit or cache work."""
        if not request.source_image:
            raise InvalidInputError("imageData", "imageData must not be empty")
        if len(request.source_image) > self.policy.max_payload_bytes:
            raise InvalidInputError(
                "imageData",
                f"imageData exceeds {self.policy.max_payload_bytes // (1024 * 1024)}MB",
            )
        for name, value in (("width", request.target_width), ("height", request.target_height)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidInputError(name, f"{name} must be an integer")
            if not 1 <= value <= self.policy.max_dimension:
                raise InvalidInputError(
                    name,
                    f"{name} must be between 1 and {self.policy.max_dimension}",
                )

    async def _cache_get(self, key: str) -> Optional[bytes]:
        """Cache lookup; an unavailable cache counts as a miss."""
        try:
            return await self.cache.get(key)
        except CacheUnavailableError as e:
            logger.warning(f"[ResizeHandler] Cache unavailable on read, resizing anyway: {e}")
            return None

    async def _cache_put(self, key: str, artifact: bytes) -> None:
        """Cache write; an unavailable cache only loses the optimization."""
        try:
            await self.cache.put(key, artifact, self.policy.cache_ttl)
        except CacheUnavailableError as e:
            logger.warning(f"[ResizeHandler] Cache unavailable on write, skipping: {e}")

    async def _resize(self, request: ResizeRequest) -> ResizedImage:
        """
        Run the engine in the worker pool, bounded by the policy timeout.

        Time spent queued for a worker and time spent resizing are bounded
        separately. A resize that times out while running keeps its thread
        until Pillow returns; RESIZE_WORKERS caps how many such threads can
        pile up.
        """
        loop = asyncio.get_running_loop()
        started = asyncio.Event()

        def run() -> ResizedImage:
            loop.call_soon_threadsafe(started.set)
            return self.engine.resize(
                request.source_image,
                request.target_width,
                request.target_height,
                request.options,
            )

        future = loop.run_in_executor(self._executor, run)

        timeout = self.policy.resize_timeout
        try:
            if timeout is not None:
                try:
                    await asyncio.wait_for(started.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    # Drop the queued job so it never takes a worker
                    future.cancel()
                    raise
                resized = await asyncio.wait_for(future, timeout=timeout)
            else:
                resized = await future
        except asyncio.TimeoutError:
            raise ResizeTimeoutError(f"Resize exceeded {timeout}s")
        except ResizeGatewayError:
            raise
        except Exception as e:
            logger.error(f"[ResizeHandler] Unexpected resize failure: {e}", exc_info=True)
            raise InternalError(str(e)) from e

        if (resized.width, resized.height) != (request.target_width, request.target_height):
            raise InternalError(
                f"Engine returned {resized.width}x{resized.height}, "
                f"expected {request.target_width}x{request.target_height}"
            )
        return resized

    def stats(self) -> dict:
        return {
            "cache": self.cache.stats(),
            "rate_limit": self.rate_limiter.stats(),
            "policy": {
                "max_dimension": self.policy.max_dimension,
                "cache_ttl_hours": self.policy.cache_ttl / 3600,
                "resize_timeout": self.policy.resize_timeout,
                "max_payload_mb": self.policy.max_payload_bytes / (1024 * 1024),
            },
        }

    def close(self) -> None:
        """Shut down the worker pool if this handler created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
