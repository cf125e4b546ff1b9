"""
Resize gateway test configuration

Shared pytest fixtures and helpers:
- FakeClock: controllable time source for TTL and window tests
- make_image_bytes: encoded sample images built with Pillow
- memory_store / limiter / handler: wired components using the fake clock
"""

import os
import sys
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

# Add backend directory to the Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from cache import MemoryStore
from rate_limit import FixedWindowRateLimiter
from image_resize.engine import ResizeEngine
from image_resize.handler import ResizeHandler, ResizePolicy


# ============================================
# Helpers
# ============================================

class FakeClock:
    """Manually advanced clock, callable like time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_image_bytes(
    width: int = 400,
    height: int = 300,
    fmt: str = "PNG",
    mode: str = "RGB",
    noise: bool = False,
    color=(200, 80, 40),
) -> bytes:
    """
    Encode a test image.

    noise=True fills the image with random pixels so the encoded
    payload is large and incompressible.
    """
    if noise:
        bands = len(Image.new(mode, (1, 1)).getbands())
        img = Image.frombytes(mode, (width, height), os.urandom(width * height * bands))
    else:
        fill = color if mode in ("RGB", "RGBA") else color[0]
        if mode == "RGBA" and len(color) == 3:
            fill = (*color, 128)
        img = Image.new(mode, (width, height), fill)
    output = BytesIO()
    img.save(output, format=fmt)
    return output.getvalue()


def open_image(data: bytes) -> Image.Image:
    img = Image.open(BytesIO(data))
    img.load()
    return img


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def png_400x300():
    return make_image_bytes(400, 300, "PNG")


@pytest.fixture
def memory_store(clock):
    return MemoryStore(max_entries=100, max_size_bytes=50 * 1024 * 1024, clock=clock)


@pytest.fixture
def limiter(clock):
    return FixedWindowRateLimiter(limit=10, window_seconds=60, clock=clock)


@pytest.fixture
def engine():
    return ResizeEngine()


@pytest.fixture
def handler(memory_store, limiter, engine):
    """Handler with in-memory cache, fake clock and default policy."""
    h = ResizeHandler(
        cache=memory_store,
        rate_limiter=limiter,
        engine=engine,
        policy=ResizePolicy(resize_timeout=10.0),
        max_workers=2,
    )
    yield h
    h.close()
