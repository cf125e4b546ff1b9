"""
Resize Gateway Configuration

All settings come from environment variables with production defaults.
"""

import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ============================================
# Rate limiting
# ============================================

RATE_LIMIT_REQUESTS = int(os.getenv("RATE_LIMIT_REQUESTS", "10"))
RATE_LIMIT_WINDOW_SECONDS = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

# Take client identity from the first X-Forwarded-For address (behind a proxy)
TRUST_FORWARDED_FOR = _env_bool("TRUST_FORWARDED_FOR", "true")

# ============================================
# Artifact cache
# ============================================

CACHE_BACKEND = os.getenv("CACHE_BACKEND", "memory").strip().lower()   # memory | file
CACHE_DIR = os.getenv("CACHE_DIR", "./resize_cache")
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", str(7 * 24 * 60 * 60)))
CACHE_MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", "1000"))
CACHE_MAX_SIZE_MB = int(os.getenv("CACHE_MAX_SIZE_MB", "500"))

# ============================================
# Resizing
# ============================================

MAX_DIMENSION = int(os.getenv("MAX_DIMENSION", "2000"))
MAX_PAYLOAD_MB = int(os.getenv("MAX_PAYLOAD_MB", "10"))
# Applies separately to waiting for a worker and to the resize itself
RESIZE_TIMEOUT_SECONDS = float(os.getenv("RESIZE_TIMEOUT_SECONDS", "10"))
# A timed-out resize holds its worker until Pillow returns, so size this
# for the worst-case decode rather than the average
RESIZE_WORKERS = int(os.getenv("RESIZE_WORKERS", "4"))

# ============================================
# Logging
# ============================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
