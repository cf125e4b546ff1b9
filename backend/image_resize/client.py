"""
Resize Gateway Client

Async HTTP client for POST /api/resize, used by services and tools that
need resized images from a running gateway.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from .payload import decode_image_data, encode_data_url

logger = logging.getLogger(__name__)


class ResizeClientError(Exception):
    """Gateway rejected or failed the request."""

    def __init__(self, status_code: int, message: str, field: Optional[str] = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.field = field


class ClientRateLimitedError(ResizeClientError):
    """Gateway rate limited this client."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(429, message)
        self.retry_after = retry_after


@dataclass
class ClientResizeResponse:
    """Resized image returned by the gateway."""
    data: bytes
    mime_type: str
    width: int
    height: int
    cached: bool


class ResizeClient:
    """
    Client for the resize gateway.

    Usage:
        async with ResizeClient("http://localhost:8000") as client:
            resized = await client.resize(png_bytes, 64, 64)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.http_client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ResizeClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self):
        """Close HTTP client."""
        await self.http_client.aclose()

    async def resize(
        self,
        image: bytes,
        width: int,
        height: int,
        *,
        mime_type: str = "image/png",
        preserve_quality: bool = True,
        smooth_edges: bool = True,
    ) -> ClientResizeResponse:
        """
        Resize image through the gateway.

        Raises:
            ClientRateLimitedError: 429 from the gateway
            ResizeClientError: any other non-2xx response
        """
        response = await self.http_client.post("/api/resize", json={
            "imageData": encode_data_url(image, mime_type),
            "width": width,
            "height": height,
            "preserveQuality": preserve_quality,
            "smoothEdges": smooth_edges,
        })

        self._raise_for_status(response)

        body = response.json()
        return ClientResizeResponse(
            data=decode_image_data(body["imageData"]),
            mime_type=body["mimeType"],
            width=body["width"],
            height=body["height"],
            cached=body["cached"],
        )

    async def resize_binary(
        self,
        image: bytes,
        width: int,
        height: int,
        *,
        mime_type: str = "application/octet-stream",
    ) -> bytes:
        """Resize via the raw body endpoint and return the image bytes."""
        response = await self.http_client.post(
            "/api/resize/binary",
            params={"width": width, "height": height},
            content=image,
            headers={"Content-Type": mime_type},
        )
        self._raise_for_status(response)
        return response.content

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Map gateway error responses onto client exceptions."""
        if response.status_code < 400:
            return

        body = self._json_or_empty(response)
        if response.status_code == 429:
            retry_after = body.get("retryAfter")
            logger.info(f"[ResizeClient] Rate limited, retry after {retry_after}s")
            raise ClientRateLimitedError(
                body.get("error", "Rate limit exceeded"),
                retry_after=float(retry_after) if retry_after is not None else None,
            )
        raise ResizeClientError(
            response.status_code,
            body.get("error", response.text),
            field=body.get("field"),
        )

    @staticmethod
    def _json_or_empty(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
