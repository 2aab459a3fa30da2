"""Thumbnail derivation for raster image uploads.

Only PNG, JPEG and BMP files get a thumbnail. The thumbnail is resized to a
fixed width with the height following the aspect ratio, re-encoded in the
original format and stored next to the original as ``thumb-<hash><ext>``.
"""

import logging
from io import BytesIO
from typing import Any, Protocol

from PIL import Image, UnidentifiedImageError

from .constants import (
    IMAGE_MIME_TYPES,
    MIME_BMP,
    MIME_JPEG,
    MIME_PNG,
    THUMBNAIL_PREFIX,
    THUMBNAIL_QUALITY,
)
from .errors import ThumbnailError
from .models import FileRecord

logger = logging.getLogger(__name__)


def is_thumbnail_eligible(mime: str) -> bool:
    """True if files of this MIME type get a thumbnail."""
    return mime in IMAGE_MIME_TYPES


class ImageCodec(Protocol):
    """
    Protocol for image decode/resize/encode backends.

    Implementations raise on malformed input; the deriver turns those
    errors into ThumbnailError.
    """

    def decode(self, buffer: bytes) -> Any:
        ...

    def resize(self, image: Any, width: int) -> Any:
        """Resize to width, height following the aspect ratio."""
        ...

    def encode(self, image: Any, mime: str, quality: int) -> bytes:
        ...


_PIL_FORMATS = {
    MIME_PNG: "PNG",
    MIME_JPEG: "JPEG",
    MIME_BMP: "BMP",
}


class PillowImageCodec:
    """ImageCodec backed by Pillow."""

    def decode(self, buffer: bytes) -> Image.Image:
        image = Image.open(BytesIO(buffer))
        # Force a full decode so truncated files fail here
        image.load()
        return image

    def resize(self, image: Image.Image, width: int) -> Image.Image:
        src_width, src_height = image.size
        height = max(1, round(src_height * width / src_width))
        return image.resize((width, height), Image.Resampling.BICUBIC)

    def encode(self, image: Image.Image, mime: str, quality: int) -> bytes:
        fmt = _PIL_FORMATS.get(mime)
        if fmt is None:
            raise ValueError(f"Cannot encode images as {mime}")

        out = BytesIO()
        if fmt == "JPEG":
            # JPEG has no alpha or palette
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            image.save(out, format=fmt, quality=quality)
        else:
            image.save(out, format=fmt)
        return out.getvalue()


def derive_thumbnail(file: FileRecord, max_width: int, codec: ImageCodec) -> FileRecord:
    """
    Build the thumbnail record for an image file.

    The original record is left untouched; the thumbnail is a copy with
    hash, url, buffer and size replaced.

    Args:
        file: Original image record (buffer required)
        max_width: Target width in pixels
        codec: Image backend

    Returns:
        FileRecord for the thumbnail, url unset

    Raises:
        ThumbnailError: If the image can't be decoded or re-encoded
    """
    try:
        image = codec.decode(file.buffer)
        resized = codec.resize(image, max_width)
        encoded = codec.encode(resized, file.mime, THUMBNAIL_QUALITY)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ThumbnailError(file.hash, file.mime, e) from e

    logger.debug(
        "Derived %dpx thumbnail for %s (%d bytes)", max_width, file.hash, len(encoded)
    )
    return file.model_copy(
        update={
            "hash": THUMBNAIL_PREFIX + file.hash,
            "url": None,
            "buffer": encoded,
            "size": len(encoded),
        }
    )
