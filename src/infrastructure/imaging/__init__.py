"""
Image processing infrastructure.

Decodes uploads with Pillow and re-encodes them as PNG, optionally with
a thumbnail or a content-type tag.
"""

from .transform import (
    ImageDecodingError,
    ImageTransformer,
    PngTransformer,
    ProcessedImage,
    TaggedPngTransformer,
    ThumbnailPngTransformer,
    create_image_transformer,
)

__all__ = [
    "ImageDecodingError",
    "ImageTransformer",
    "PngTransformer",
    "ProcessedImage",
    "TaggedPngTransformer",
    "ThumbnailPngTransformer",
    "create_image_transformer",
]
