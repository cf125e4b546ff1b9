"""
Image Resize Module

Resize gateway: accepts an image plus target dimensions, rate limits per
client, deduplicates identical requests through a content-addressed cache
and returns the resized artifact.

Features:
- Pillow resize engine with explicit quality/smoothing options
- Full-payload sha256 fingerprints as cache keys
- 7-day artifact cache, 10 requests / 60s per client (configurable)
"""

from .engine import ResizeEngine, ResizeOptions, ResizedImage
from .errors import (
    DecodeError,
    InternalError,
    InvalidInputError,
    RateLimitedError,
    ResizeError,
    ResizeGatewayError,
    ResizeTimeoutError,
    UnsupportedFormatError,
)
from .fingerprint import fingerprint
from .handler import ResizeHandler, ResizePolicy, ResizeRequest, ResizeResult
from .routes_fastapi import router

__all__ = [
    "router",
    "ResizeEngine",
    "ResizeOptions",
    "ResizedImage",
    "ResizeHandler",
    "ResizePolicy",
    "ResizeRequest",
    "ResizeResult",
    "fingerprint",
    "ResizeGatewayError",
    "InvalidInputError",
    "RateLimitedError",
    "ResizeError",
    "DecodeError",
    "UnsupportedFormatError",
    "ResizeTimeoutError",
    "InternalError",
]
