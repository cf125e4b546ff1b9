"""
Resize Engine

Pillow-based resampling of encoded images to an exact target size.

Handles:
- Decoding the source payload and checking its format
- Resampling to exactly width x height (aspect ratio is not preserved)
- Re-encoding in the source format with quality settings from the options
"""

import logging
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from .errors import DecodeError, UnsupportedFormatError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResizeOptions:
    """Resampling options."""
    preserve_quality: bool = True   # Favour fidelity over output size
    smooth_edges: bool = True       # Interpolating filter instead of nearest neighbour


DEFAULT_OPTIONS = ResizeOptions()

# Pillow format name -> MIME type of formats the engine encodes
SUPPORTED_FORMATS = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
}

# Container formats Pillow reports under their own name but that encode as another
FORMAT_ALIASES = {
    "MPO": "JPEG",  # Multi-picture JPEG from phone cameras; primary frame is a JPEG
}


@dataclass
class ResizedImage:
    """Result of a resize."""
    data: bytes
    width: int
    height: int
    format: str

    @property
    def mime_type(self) -> str:
        return SUPPORTED_FORMATS[self.format]


class ResizeEngine:
    """
    Resizes encoded images with Pillow.

    Usage:
        engine = ResizeEngine()
        resized = engine.resize(png_bytes, 64, 64, ResizeOptions(smooth_edges=False))
    """

    def __init__(self, max_source_pixels: int = 50_000_000):
        self.max_source_pixels = max_source_pixels

    def resize(
        self,
        source_image: bytes,
        width: int,
        height: int,
        options: ResizeOptions = DEFAULT_OPTIONS,
    ) -> ResizedImage:
        """
        Resize source_image to exactly width x height.

        Raises:
            DecodeError: payload is not a readable image
            UnsupportedFormatError: format recognized but not supported
        """
        img = self._open(source_image)
        image_format = self.output_format(img)

        img = self._normalize_mode(img, image_format)
        resized = img.resize((width, height), self._resample_filter(options))

        data = self._encode(resized, image_format, options)
        logger.debug(
            f"[ResizeEngine] {image_format} {img.width}x{img.height} -> {width}x{height} "
            f"({len(source_image)} -> {len(data)} bytes)"
        )
        return ResizedImage(data=data, width=width, height=height, format=image_format)

    def _open(self, source_image: bytes) -> Image.Image:
        """Decode the payload fully, mapping Pillow failures to gateway errors."""
        # Copy so a mutable buffer from the caller is never touched
        buffer = BytesIO(bytes(source_image))
        try:
            img = Image.open(buffer)
        except UnidentifiedImageError as e:
            raise DecodeError(f"Unrecognized image data: {e}") from e
        except Image.DecompressionBombError as e:
            raise DecodeError(f"Image too large to decode: {e}") from e
        except (OSError, SyntaxError, ValueError) as e:
            # Signature matched but the plugin rejected the header
            raise DecodeError(f"Malformed image header: {e}") from e

        if self.output_format(img) not in SUPPORTED_FORMATS:
            raise UnsupportedFormatError(img.format or "unknown")

        if img.width * img.height > self.max_source_pixels:
            raise DecodeError(
                f"Source image {img.width}x{img.height} exceeds {self.max_source_pixels} pixels"
            )

        try:
            # Animated images are reduced to their first frame
            img.seek(0)
            img.load()
        except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
            raise DecodeError(f"Corrupt {img.format} data: {e}") from e
        return img

    @staticmethod
    def output_format(img: Image.Image) -> str:
        """Format the resized image is encoded in."""
        return FORMAT_ALIASES.get(img.format, img.format)

    @staticmethod
    def _normalize_mode(img: Image.Image, image_format: str) -> Image.Image:
        """Convert to a mode that resamples well and the target format can save."""
        if img.mode == "P":
            img = img.convert("RGBA" if "transparency" in img.info else "RGB")
        elif img.mode not in ("L", "LA", "RGB", "RGBA"):
            img = img.convert("RGBA" if "A" in img.getbands() else "RGB")

        if image_format == "JPEG" and img.mode in ("LA", "RGBA"):
            img = img.convert("RGB")
        elif image_format == "BMP" and img.mode == "LA":
            img = img.convert("RGBA")
        return img

    @staticmethod
    def _resample_filter(options: ResizeOptions) -> Image.Resampling:
        if not options.smooth_edges:
            return Image.Resampling.NEAREST
        if options.preserve_quality:
            return Image.Resampling.LANCZOS
        return Image.Resampling.BILINEAR

    @staticmethod
    def _encode(img: Image.Image, image_format: str, options: ResizeOptions) -> bytes:
        output = BytesIO()
        save_kwargs = {"format": image_format}

        if image_format == "JPEG":
            save_kwargs["quality"] = 95 if options.preserve_quality else 80
            if options.preserve_quality:
                save_kwargs["subsampling"] = 0
        elif image_format == "WEBP":
            save_kwargs["quality"] = 95 if options.preserve_quality else 80
            save_kwargs["method"] = 6 if options.preserve_quality else 4  # Compression method (0-6)
        elif image_format == "PNG":
            save_kwargs["compress_level"] = 6 if options.preserve_quality else 9

        try:
            img.save(output, **save_kwargs)
        except (OSError, ValueError) as e:
            raise UnsupportedFormatError(f"{image_format} ({img.mode})") from e
        return output.getvalue()
