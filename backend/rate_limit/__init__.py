"""
Rate Limit Module

Per-client request budgets for the resize gateway.
"""

from .limiter import (
    FixedWindowRateLimiter,
    RateLimitDecision,
    RateLimitWindow,
    rate_limit_key,
)

__all__ = [
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "RateLimitWindow",
    "rate_limit_key",
]
