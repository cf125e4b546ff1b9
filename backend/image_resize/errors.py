"""
Resize Gateway Errors

Service code raises these HTTP-agnostic exceptions; the application's
exception handler maps them onto responses using status_code and
public_message. Internal causes never reach the caller.
"""

from typing import Optional

from cache import CacheUnavailableError


class ResizeGatewayError(Exception):
    """Base class for every error the gateway reports to callers."""

    status_code: int = 500
    public_message: str = "Failed to process image"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)


class InvalidInputError(ResizeGatewayError):
    """Bad dimensions or payload. Always the caller's fault."""

    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.public_message = message


class RateLimitedError(ResizeGatewayError):
    """Client exhausted its request budget for the current window."""

    status_code = 429
    public_message = "Rate limit exceeded. Please try again later."

    def __init__(self, retry_after: Optional[float] = None):
        super().__init__()
        self.retry_after = retry_after


class ResizeError(ResizeGatewayError):
    """The resize step failed; nothing is cached."""


class DecodeError(ResizeError):
    """Payload is not a recognizable image encoding."""

    status_code = 400
    public_message = "Image data could not be decoded"


class UnsupportedFormatError(ResizeError):
    """Image format is recognized but not handled by the engine."""

    status_code = 415

    def __init__(self, image_format: str):
        super().__init__(f"Unsupported image format: {image_format}")
        self.image_format = image_format
        self.public_message = f"Unsupported image format: {image_format}"


class ResizeTimeoutError(ResizeError):
    """Resize did not finish within the configured timeout."""

    status_code = 504
    public_message = "Image processing timed out"


class InternalError(ResizeGatewayError):
    """Unexpected failure. Detail is kept in server logs only."""


__all__ = [
    "ResizeGatewayError",
    "InvalidInputError",
    "RateLimitedError",
    "ResizeError",
    "DecodeError",
    "UnsupportedFormatError",
    "ResizeTimeoutError",
    "InternalError",
    "CacheUnavailableError",
]
