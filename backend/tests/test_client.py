"""
Gateway client tests

Runs ResizeClient against the FastAPI app in-process through
httpx.ASGITransport.

Run:
    cd backend
    pytest tests/test_client.py -v
"""

import httpx
import pytest

from cache import MemoryStore
from image_resize.client import ClientRateLimitedError, ResizeClient, ResizeClientError
from image_resize.handler import ResizeHandler, ResizePolicy
from image_resize.routes_fastapi import get_handler
from main import app
from rate_limit import FixedWindowRateLimiter

from conftest import FakeClock, make_image_bytes, open_image


@pytest.fixture
def gateway_handler():
    clock = FakeClock()
    handler = ResizeHandler(
        cache=MemoryStore(clock=clock),
        rate_limiter=FixedWindowRateLimiter(limit=3, window_seconds=60, clock=clock),
        policy=ResizePolicy(),
        max_workers=2,
    )
    app.dependency_overrides[get_handler] = lambda: handler
    yield handler
    app.dependency_overrides.clear()
    handler.close()


def make_client() -> ResizeClient:
    return ResizeClient("http://testserver", transport=httpx.ASGITransport(app=app))


class TestResizeClient:
    """ResizeClient against the in-process gateway"""

    @pytest.mark.asyncio
    async def test_resize_round_trip(self, gateway_handler):
        source = make_image_bytes(400, 300)

        async with make_client() as client:
            first = await client.resize(source, 64, 64)
            second = await client.resize(source, 64, 64)

        assert open_image(first.data).size == (64, 64)
        assert first.mime_type == "image/png"
        assert not first.cached
        assert second.cached
        assert second.data == first.data

    @pytest.mark.asyncio
    async def test_binary_resize(self, gateway_handler):
        source = make_image_bytes(100, 100, "JPEG")

        async with make_client() as client:
            data = await client.resize_binary(source, 30, 10, mime_type="image/jpeg")

        img = open_image(data)
        assert img.format == "JPEG"
        assert img.size == (30, 10)

    @pytest.mark.asyncio
    async def test_validation_error(self, gateway_handler):
        async with make_client() as client:
            with pytest.raises(ResizeClientError) as exc_info:
                await client.resize(make_image_bytes(10, 10), 2001, 64)

        assert exc_info.value.status_code == 400
        assert exc_info.value.field == "width"

    @pytest.mark.asyncio
    async def test_rate_limited(self, gateway_handler):
        source = make_image_bytes(10, 10)

        async with make_client() as client:
            for _ in range(3):
                await client.resize(source, 5, 5)
            with pytest.raises(ClientRateLimitedError) as exc_info:
                await client.resize(source, 5, 5)

        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == pytest.approx(60)
