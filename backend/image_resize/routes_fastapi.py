"""
Image Resize API Routes

Provides endpoints for:
- Resizing images sent as base64 / data URL JSON (POST /api/resize)
- Resizing raw image bodies (POST /api/resize/binary)
- Cache statistics and management
"""

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt

from cache import CacheStore, FileCacheStore, MemoryStore
from rate_limit import FixedWindowRateLimiter

from . import config
from .engine import ResizeEngine, ResizeOptions
from .errors import InvalidInputError
from .handler import UNKNOWN_CLIENT, ResizeHandler, ResizePolicy, ResizeRequest
from .payload import decode_image_data, encode_data_url

logger = logging.getLogger(__name__)

# ============================================
# Handler wiring
# ============================================


def build_cache() -> CacheStore:
    """Create the artifact cache selected by CACHE_BACKEND."""
    if config.CACHE_BACKEND == "file":
        return FileCacheStore(
            cache_dir=config.CACHE_DIR,
            max_cache_size_mb=config.CACHE_MAX_SIZE_MB,
            max_entries=config.CACHE_MAX_ENTRIES,
        )
    if config.CACHE_BACKEND != "memory":
        logger.warning(f"[ResizeRoutes] Unknown CACHE_BACKEND '{config.CACHE_BACKEND}', using memory")
    return MemoryStore(
        max_entries=config.CACHE_MAX_ENTRIES,
        max_size_bytes=config.CACHE_MAX_SIZE_MB * 1024 * 1024,
    )


def build_handler() -> ResizeHandler:
    """Create a handler from environment configuration."""
    return ResizeHandler(
        cache=build_cache(),
        rate_limiter=FixedWindowRateLimiter(
            limit=config.RATE_LIMIT_REQUESTS,
            window_seconds=config.RATE_LIMIT_WINDOW_SECONDS,
        ),
        engine=ResizeEngine(),
        policy=ResizePolicy(
            max_dimension=config.MAX_DIMENSION,
            cache_ttl=config.CACHE_TTL_SECONDS,
            resize_timeout=config.RESIZE_TIMEOUT_SECONDS,
            max_payload_bytes=config.MAX_PAYLOAD_MB * 1024 * 1024,
        ),
        max_workers=config.RESIZE_WORKERS,
    )


resize_handler = build_handler()


def get_handler() -> ResizeHandler:
    """Dependency returning the process-wide handler (overridable in tests)."""
    return resize_handler


def get_client_id(request: Request) -> str:
    """
    Identify the caller for rate limiting.

    First X-Forwarded-For address if trusted, else the socket peer,
    else the shared "unknown" bucket.
    """
    if config.TRUST_FORWARDED_FOR:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


# ============================================
# Request/Response Models
# ============================================


class ResizeRequestBody(BaseModel):
    """Request model for JSON resize."""
    model_config = ConfigDict(populate_by_name=True)

    image_data: str = Field(..., alias="imageData", description="Base64 image or data URL")
    width: StrictInt = Field(..., description="Target width in pixels (1-2000)")
    height: StrictInt = Field(..., description="Target height in pixels (1-2000)")
    preserve_quality: StrictBool = Field(True, alias="preserveQuality", description="Favour fidelity over size")
    smooth_edges: StrictBool = Field(True, alias="smoothEdges", description="Interpolate instead of nearest neighbour")


class ResizeResponseBody(BaseModel):
    """Response model for JSON resize."""
    model_config = ConfigDict(populate_by_name=True)

    image_data: str = Field(..., alias="imageData")
    width: int
    height: int
    mime_type: str = Field(..., alias="mimeType")
    cached: bool


# ============================================
# Router
# ============================================

router = APIRouter(prefix="/api/resize", tags=["Image Resize"])

# Query dimensions arrive as text; only plain digit strings are integers
DIMENSION_PATTERN = r"^[0-9]{1,9}$"


def _cache_headers(cache_hit: bool) -> dict:
    return {"X-Cache": "HIT" if cache_hit else "MISS"}


# ============================================
# Endpoints
# ============================================

@router.post("")
@router.post("/")
async def resize_image(
    body: ResizeRequestBody,
    request: Request,
    handler: ResizeHandler = Depends(get_handler),
):
    """
    Resize an image sent as base64 or a data URL.

    This endpoint:
    1. Validates the payload and dimensions
    2. Applies the per-client rate limit
    3. Returns the cached artifact if this exact request was seen before
    4. Otherwise resizes, caches the result for 7 days and returns it

    Example:
        POST /api/resize
        {"imageData": "data:image/png;base64,iVBOR...", "width": 64, "height": 64}
    """
    source_image = decode_image_data(body.image_data)
    result = await handler.handle(ResizeRequest(
        source_image=source_image,
        target_width=body.width,
        target_height=body.height,
        client_id=get_client_id(request),
        options=ResizeOptions(
            preserve_quality=body.preserve_quality,
            smooth_edges=body.smooth_edges,
        ),
    ))

    payload = ResizeResponseBody(
        image_data=encode_data_url(result.artifact, result.mime_type),
        width=body.width,
        height=body.height,
        mime_type=result.mime_type,
        cached=result.cache_hit,
    )
    return JSONResponse(
        content=payload.model_dump(by_alias=True),
        headers=_cache_headers(result.cache_hit),
    )


@router.post("/binary")
async def resize_image_binary(
    request: Request,
    width: str = Query(..., pattern=DIMENSION_PATTERN, description="Target width in pixels (1-2000)"),
    height: str = Query(..., pattern=DIMENSION_PATTERN, description="Target height in pixels (1-2000)"),
    preserve_quality: bool = Query(True),
    smooth_edges: bool = Query(True),
    handler: ResizeHandler = Depends(get_handler),
):
    """
    Resize a raw image request body and return raw image bytes.

    Example:
        POST /api/resize/binary?width=64&height=64
        Content-Type: image/png
        <image bytes>
    """
    max_bytes = handler.policy.max_payload_bytes
    content_length = request.headers.get("content-length", "")
    if content_length.isdigit() and int(content_length) > max_bytes:
        raise InvalidInputError("imageData", f"imageData exceeds {max_bytes // (1024 * 1024)}MB")

    source_image = await request.body()
    result = await handler.handle(ResizeRequest(
        source_image=source_image,
        target_width=int(width),
        target_height=int(height),
        client_id=get_client_id(request),
        options=ResizeOptions(
            preserve_quality=preserve_quality,
            smooth_edges=smooth_edges,
        ),
    ))
    return Response(
        content=result.artifact,
        media_type=result.mime_type,
        headers=_cache_headers(result.cache_hit),
    )


@router.get("/stats")
async def get_stats(handler: ResizeHandler = Depends(get_handler)):
    """
    Get cache and rate limiter statistics.
    """
    return JSONResponse(content={
        "success": True,
        "stats": handler.stats(),
    })


@router.post("/cache/cleanup")
async def cleanup_cache(handler: ResizeHandler = Depends(get_handler)):
    """
    Clean up expired cache entries.

    Expired entries are never served, but they hold memory/disk until
    the next write or this cleanup.
    """
    removed = await handler.cache.cleanup_expired()
    pruned = handler.rate_limiter.prune_expired()
    return JSONResponse(content={
        "success": True,
        "removed_entries": removed,
        "pruned_windows": pruned,
        "current_stats": handler.cache.stats(),
    })


@router.delete("/cache/clear")
async def clear_cache(handler: ResizeHandler = Depends(get_handler)):
    """
    Clear all cached artifacts.

    Use with caution - every following request will be a cache miss.
    """
    removed = await handler.cache.clear()
    return JSONResponse(content={
        "success": True,
        "removed_entries": removed,
        "message": "Cache cleared successfully",
    })


@router.get("/health")
async def health_check(handler: ResizeHandler = Depends(get_handler)):
    """Health check endpoint."""
    return JSONResponse(content={
        "status": "healthy",
        "service": "image-resize",
        "cache_stats": handler.cache.stats(),
    })
