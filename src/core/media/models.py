"""
Domain models for the media relay.

Two identifiers live here and they must never be confused:
- MediaId: the external handle. Random, unguessable, one per upload.
- ObjectId: the internal content hash. Identical payloads share one.

Possession of a MediaId is the only credential needed to read an object,
so its value space has to stay far larger than the number of live handles.
"""

import re
import secrets
from dataclasses import dataclass
from typing import Callable, Generic, NewType, TypeVar


class MediaRelayError(Exception):
    """Base class for media relay errors."""
    pass


class InvalidMediaIdError(MediaRelayError, ValueError):
    """Raised when a handle token is not 16 hexadecimal digits."""
    pass


MEDIA_ID_BITS = 64
MEDIA_ID_HEX_WIDTH = MEDIA_ID_BITS // 4

_HEX_TOKEN = re.compile(r"[0-9a-fA-F]{16}")


# Content hash of a stored payload
ObjectId = NewType("ObjectId", int)


@dataclass(frozen=True)
class MediaId:
    """
    External handle for an uploaded object.

    Frozen because a handle is a value: two handles with the same number
    are the same handle. Serialized as fixed-width lowercase hex so it can
    be used verbatim as a URL path segment.
    """
    value: int

    def __post_init__(self) -> None:
        if not 0 <= self.value < 1 << MEDIA_ID_BITS:
            raise InvalidMediaIdError(
                f"MediaId must fit in {MEDIA_ID_BITS} bits, got {self.value}"
            )

    @classmethod
    def generate(cls, randbits: Callable[[int], int] = secrets.randbits) -> "MediaId":
        """Draw a fresh handle from a uniform random source."""
        return cls(randbits(MEDIA_ID_BITS))

    @classmethod
    def from_hex(cls, token: str) -> "MediaId":
        """
        Parse a handle token.

        Strict: exactly 16 hex digits, no 0x prefix, sign or whitespace.
        Either letter case is accepted.
        """
        if not isinstance(token, str) or not _HEX_TOKEN.fullmatch(token):
            raise InvalidMediaIdError(f"Invalid media id: {token!r}")
        return cls(int(token, 16))

    @property
    def hex(self) -> str:
        return f"{self.value:0{MEDIA_ID_HEX_WIDTH}x}"

    def __str__(self) -> str:
        return self.hex


# ---------------------------------------------------------------------------
# Stored object metadata variants
# ---------------------------------------------------------------------------
#
# A deployment picks exactly one of these as the metadata type of its
# storage: None (payload only), Thumbnail, or ContentType.

@dataclass(frozen=True)
class Thumbnail:
    """Downscaled rendition stored next to the primary payload."""
    data: bytes


@dataclass(frozen=True)
class ContentType:
    """MIME type tag for the primary payload."""
    mime: str

    def __post_init__(self) -> None:
        major, _, minor = self.mime.partition("/")
        if not major or not minor:
            raise ValueError(f"Not a MIME type: {self.mime!r}")


M = TypeVar("M")


@dataclass(frozen=True)
class StoredObject(Generic[M]):
    """
    A payload and its metadata as held by storage.

    Returned as-is on retrieval: bytes are immutable and the dataclass is
    frozen, so callers cannot alter what other handles see.
    """
    payload: bytes
    metadata: M

    @property
    def size_bytes(self) -> int:
        return len(self.payload)
