"""
Request Fingerprinting

Derives the artifact cache key from the full source payload, the target
dimensions and the resize options.
"""

import hashlib
import struct
from typing import Optional

from .engine import DEFAULT_OPTIONS, ResizeOptions

# Key family for artifacts; rate limit windows use "ratelimit:"
CACHE_KEY_PREFIX = "img:"


def fingerprint(
    source_image: bytes,
    width: int,
    height: int,
    options: Optional[ResizeOptions] = None,
) -> str:
    """
    Compute the cache key for a resize request.

    Every field is length-prefixed or fixed-width so no two distinct inputs
    can produce the same byte stream. The whole payload is hashed.

    Returns:
        "img:" followed by a 64-char sha256 hex digest
    """
    options = options or DEFAULT_OPTIONS
    digest = hashlib.sha256()
    digest.update(struct.pack(">Q", len(source_image)))
    digest.update(source_image)
    digest.update(struct.pack(
        ">II??",
        width,
        height,
        options.preserve_quality,
        options.smooth_edges,
    ))
    return f"{CACHE_KEY_PREFIX}{digest.hexdigest()}"
