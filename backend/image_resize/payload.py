"""
Image Payload Codec

Handles the wire representation of images:
- Decoding base64 strings and data URLs sent by clients
- Encoding artifacts back into data URLs
- Sniffing the MIME type of stored artifacts from their signature
"""

import base64
import binascii
from typing import Optional

from .errors import InvalidInputError

# Magic byte signatures for formats the engine can produce
_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
)


def decode_image_data(image_data: str, field: str = "imageData") -> bytes:
    """
    Decode a base64 string or a data URL into raw bytes.

    Accepts both "data:image/png;base64,iVBOR..." and bare base64.

    Raises:
        InvalidInputError: if the value is empty or not valid base64
    """
    if not image_data or not image_data.strip():
        raise InvalidInputError(field, f"{field} must not be empty")

    data = image_data.strip()
    if data.startswith("data:"):
        header, sep, data = data.partition(",")
        if not sep or ";base64" not in header:
            raise InvalidInputError(field, f"{field} must be a base64 data URL")

    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidInputError(field, f"{field} is not valid base64")


def encode_data_url(artifact: bytes, mime_type: str) -> str:
    """Encode bytes as a data URL."""
    return f"data:{mime_type};base64,{base64.b64encode(artifact).decode('ascii')}"


def sniff_mime_type(artifact: bytes) -> Optional[str]:
    """Detect the MIME type of an encoded image from its leading bytes."""
    if len(artifact) >= 12 and artifact[:4] == b"RIFF" and artifact[8:12] == b"WEBP":
        return "image/webp"
    for signature, mime_type in _SIGNATURES:
        if artifact.startswith(signature):
            return mime_type
    return None
