"""
Photo compression for card records.

Photos travel as data URIs. Anything that is not a `data:image` URI, or that
Pillow cannot decode, is handed back untouched: compression never fails a
write.
"""

from __future__ import annotations

import base64
import binascii
import io
from dataclasses import dataclass

from PIL import Image, ImageOps

DATA_URI_PREFIX = "data:image"
OUTPUT_MIME = "image/jpeg"


@dataclass(frozen=True)
class CompressionProfile:
    """Target box size (pixels) and lossy quality in [0, 1]."""

    max_dimension: int
    quality: float

    def is_more_aggressive_than(self, other: "CompressionProfile") -> bool:
        return (
            self.max_dimension <= other.max_dimension
            and self.quality <= other.quality
            and self != other
        )


def to_data_uri(data: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_uri(value: str) -> bytes:
    header, sep, payload = value.partition(",")
    if not sep or ";base64" not in header:
        raise ValueError("only base64 data URIs are supported")
    return base64.b64decode("".join(payload.split()), validate=True)


def _jpeg_quality(quality: float) -> int:
    # Pillow discourages values above 95
    return max(1, min(95, int(round(quality * 100))))


class ImageCompressor:
    """Downscale to fit a square box, then re-encode as JPEG."""

    def compress(self, image: str, max_dimension: int, quality: float) -> str:
        if not image or not image.startswith(DATA_URI_PREFIX):
            return image
        try:
            payload = self._encode(decode_data_uri(image), max_dimension, quality)
        except (OSError, ValueError, binascii.Error, Image.DecompressionBombError) as exc:
            print(f"[image] Could not compress photo ({exc}); keeping original.")
            return image
        return to_data_uri(payload, OUTPUT_MIME)

    def _encode(self, data: bytes, max_dimension: int, quality: float) -> bytes:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            try:
                picture = ImageOps.exif_transpose(source)
            except Exception:
                picture = source
            picture = picture.convert("RGB")
        ratio = min(max_dimension / picture.width, max_dimension / picture.height, 1.0)
        size = (max(1, round(picture.width * ratio)), max(1, round(picture.height * ratio)))
        if size != picture.size:
            picture = picture.resize(size, Image.LANCZOS)
        buffer = io.BytesIO()
        picture.save(buffer, format="JPEG", quality=_jpeg_quality(quality), optimize=True)
        return buffer.getvalue()
