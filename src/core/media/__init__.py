"""
Media identity and storage.

Contains the content-addressed storage, the handle manager and the
expiration scheduler.
"""

from .expiration import DEFAULT_TTL, ExpirationScheduler
from .manager import MediaManager
from .models import (
    ContentType,
    InvalidMediaIdError,
    MediaId,
    MediaRelayError,
    ObjectId,
    StoredObject,
    Thumbnail,
)
from .storage import MemoryStorage, Storage, content_hash
from .table import ConcurrentTable

__all__ = [
    "ConcurrentTable",
    "ContentType",
    "DEFAULT_TTL",
    "ExpirationScheduler",
    "InvalidMediaIdError",
    "MediaId",
    "MediaManager",
    "MediaRelayError",
    "MemoryStorage",
    "ObjectId",
    "Storage",
    "StoredObject",
    "Thumbnail",
    "content_hash",
]
