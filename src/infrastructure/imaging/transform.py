"""
Image normalization using Pillow.

Every upload is decoded and re-encoded as PNG before it is stored:
- Uploads in any format Pillow recognises are accepted
- Stored payloads are byte-stable for identical pixels, which is what
  makes content-addressed deduplication effective
- Clients always get back a single, predictable format

Decoding is CPU-bound, so the async entry points run it in a worker
thread to keep the event loop free for other requests.

Three transformers exist, one per storage metadata shape. A deployment
wires exactly one of them.
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Generic, Optional, Protocol, TypeVar

from PIL import Image, UnidentifiedImageError

from ...core.media.models import ContentType, MediaRelayError, Thumbnail

logger = logging.getLogger(__name__)

M = TypeVar("M")

PNG_CONTENT_TYPE = "image/png"
DEFAULT_THUMBNAIL_EDGE = 256


class ImageDecodingError(MediaRelayError):
    """Raised when uploaded bytes are not a decodable image."""
    pass


@dataclass(frozen=True)
class ProcessedImage(Generic[M]):
    """Re-encoded payload plus the metadata the deployment stores with it."""
    payload: bytes
    metadata: M


class ImageTransformer(Protocol[M]):
    """
    Protocol for upload transforms.

    Using a protocol means routes depend on the shape of the output, not
    on Pillow, and tests can substitute a trivial transformer.
    """

    async def transform(self, data: bytes) -> ProcessedImage[M]:
        """Decode raw upload bytes and produce the stored representation."""
        ...


def decode_image(data: bytes) -> Image.Image:
    """
    Decode bytes into a fully loaded Pillow image.

    Image.open is lazy and only reads the header, so load() is called to
    surface truncated or corrupt pixel data here rather than later.
    """
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except UnidentifiedImageError as e:
        raise ImageDecodingError("type is not recognizable") from e
    except (
        OSError,
        ValueError,
        SyntaxError,
        EOFError,
        NotImplementedError,
        Image.DecompressionBombError,
    ) as e:
        # Plugins signal unsupported variants of a recognised format with
        # NotImplementedError and short multi-frame files with EOFError
        raise ImageDecodingError(f"image decoding error: {e}") from e
    return image


def encode_png(image: Image.Image) -> bytes:
    """Encode an image as PNG, converting modes PNG cannot hold."""
    if image.mode == "F":
        image = image.convert("I")
    elif image.mode not in ("1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"):
        image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def make_thumbnail(image: Image.Image, max_edge: int = DEFAULT_THUMBNAIL_EDGE) -> bytes:
    """Downscale a copy so its longest edge is at most max_edge, as PNG."""
    thumb = image.copy()
    thumb.thumbnail((max_edge, max_edge))
    return encode_png(thumb)


class PngTransformer:
    """Re-encode as PNG and store the payload alone."""

    async def transform(self, data: bytes) -> ProcessedImage[None]:
        return await asyncio.to_thread(self._transform, data)

    def _transform(self, data: bytes) -> ProcessedImage[None]:
        return ProcessedImage(payload=encode_png(decode_image(data)), metadata=None)


class ThumbnailPngTransformer:
    """Re-encode as PNG and store a downscaled thumbnail alongside."""

    def __init__(self, max_edge: int = DEFAULT_THUMBNAIL_EDGE) -> None:
        if max_edge < 1:
            raise ValueError("max_edge must be positive")
        self._max_edge = max_edge

    async def transform(self, data: bytes) -> ProcessedImage[Thumbnail]:
        return await asyncio.to_thread(self._transform, data)

    def _transform(self, data: bytes) -> ProcessedImage[Thumbnail]:
        image = decode_image(data)
        return ProcessedImage(
            payload=encode_png(image),
            metadata=Thumbnail(make_thumbnail(image, self._max_edge)),
        )


class TaggedPngTransformer:
    """Re-encode as PNG and tag the payload with its content type."""

    async def transform(self, data: bytes) -> ProcessedImage[ContentType]:
        return await asyncio.to_thread(self._transform, data)

    def _transform(self, data: bytes) -> ProcessedImage[ContentType]:
        payload = encode_png(decode_image(data))

        logger.debug(
            "Transformed image",
            extra={"input_bytes": len(data), "output_bytes": len(payload)},
        )

        return ProcessedImage(payload=payload, metadata=ContentType(PNG_CONTENT_TYPE))


def create_image_transformer(thumbnail_max_edge: Optional[int] = None) -> ImageTransformer:
    """
    Factory for the deployment's transformer.

    The HTTP service serves a content type with every payload, so it uses
    the tagged transformer. Passing thumbnail_max_edge selects the
    thumbnail shape instead, for deployments that store thumbnails.
    """
    if thumbnail_max_edge is not None:
        return ThumbnailPngTransformer(thumbnail_max_edge)
    return TaggedPngTransformer()
