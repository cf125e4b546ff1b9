"""
Resize engine tests

Run:
    cd backend
    pytest tests/test_engine.py -v
"""

from io import BytesIO

import pytest
from PIL import Image

from image_resize.engine import ResizeEngine, ResizeOptions
from image_resize.errors import DecodeError, UnsupportedFormatError

from conftest import make_image_bytes, open_image


class TestResize:
    """Exact-size resampling"""

    def test_exact_target_size(self, engine, png_400x300):
        """Test: output is exactly the requested size"""
        resized = engine.resize(png_400x300, 64, 64)

        assert (resized.width, resized.height) == (64, 64)
        assert open_image(resized.data).size == (64, 64)

    def test_distorting_resize(self, engine, png_400x300):
        """Test: aspect ratio is not preserved"""
        resized = engine.resize(png_400x300, 2000, 1)

        assert open_image(resized.data).size == (2000, 1)

    def test_keeps_png_format(self, engine, png_400x300):
        resized = engine.resize(png_400x300, 32, 16)

        assert resized.format == "PNG"
        assert resized.mime_type == "image/png"
        assert open_image(resized.data).format == "PNG"

    def test_jpeg(self, engine):
        source = make_image_bytes(120, 80, "JPEG")
        resized = engine.resize(source, 60, 40, ResizeOptions(preserve_quality=False))

        img = open_image(resized.data)
        assert img.format == "JPEG"
        assert img.size == (60, 40)
        assert resized.mime_type == "image/jpeg"

    def test_gif_first_frame(self, engine):
        source = make_image_bytes(50, 50, "GIF")
        resized = engine.resize(source, 10, 20)

        img = open_image(resized.data)
        assert img.format == "GIF"
        assert img.size == (10, 20)

    def test_png_alpha_kept(self, engine):
        source = make_image_bytes(40, 40, "PNG", mode="RGBA")
        resized = engine.resize(source, 20, 20)

        assert open_image(resized.data).mode == "RGBA"

    def test_grayscale(self, engine):
        source = make_image_bytes(40, 40, "PNG", mode="L")
        resized = engine.resize(source, 8, 8)

        assert open_image(resized.data).mode == "L"

    def test_deterministic(self, engine, png_400x300):
        """Test: identical requests produce identical artifacts"""
        first = engine.resize(png_400x300, 64, 64)
        second = engine.resize(png_400x300, 64, 64)

        assert first.data == second.data

    def test_smoothing_changes_output(self, engine):
        source = make_image_bytes(97, 61, "PNG", noise=True)
        smooth = engine.resize(source, 40, 30, ResizeOptions(smooth_edges=True))
        nearest = engine.resize(source, 40, 30, ResizeOptions(smooth_edges=False))

        assert smooth.data != nearest.data

    def test_input_not_mutated(self, engine, png_400x300):
        buffer = bytearray(png_400x300)
        engine.resize(buffer, 64, 64)

        assert bytes(buffer) == png_400x300


class TestResizeErrors:
    """Decode and format failures"""

    def test_garbage_is_decode_error(self, engine):
        with pytest.raises(DecodeError):
            engine.resize(b"definitely not an image", 64, 64)

    def test_truncated_is_decode_error(self, engine):
        source = make_image_bytes(300, 300, "PNG", noise=True)

        with pytest.raises(DecodeError):
            engine.resize(source[: len(source) // 2], 64, 64)

    def test_tiff_is_unsupported(self, engine):
        source = make_image_bytes(40, 40, "TIFF")

        with pytest.raises(UnsupportedFormatError) as exc_info:
            engine.resize(source, 20, 20)
        assert exc_info.value.image_format == "TIFF"

    def test_oversized_source_rejected(self, png_400x300):
        engine = ResizeEngine(max_source_pixels=1000)

        with pytest.raises(DecodeError):
            engine.resize(png_400x300, 10, 10)

    def test_malformed_bmp_header_is_decode_error(self, engine):
        """Test: a recognized signature with a broken header is a decode error"""
        with pytest.raises(DecodeError):
            engine.resize(b"BM" + b"\x00" * 60, 64, 64)


class TestMultiPicture:
    """MPO (multi-picture JPEG) sources"""

    @staticmethod
    def make_mpo_bytes(width: int = 120, height: int = 80) -> bytes:
        first = Image.new("RGB", (width, height), (200, 80, 40))
        second = Image.new("RGB", (width, height), (40, 80, 200))
        output = BytesIO()
        first.save(output, format="MPO", save_all=True, append_images=[second])
        return output.getvalue()

    def test_mpo_encoded_as_jpeg(self, engine):
        """Test: camera MPO files resize to a plain JPEG of the primary picture"""
        source = self.make_mpo_bytes()
        assert open_image(source).format == "MPO"

        resized = engine.resize(source, 30, 20)

        assert resized.format == "JPEG"
        assert resized.mime_type == "image/jpeg"
        result = open_image(resized.data)
        assert result.format == "JPEG"
        assert result.size == (30, 20)
        red, _, blue = result.convert("RGB").getpixel((15, 10))
        assert red > blue
