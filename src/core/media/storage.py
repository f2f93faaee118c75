"""
Content-addressed blob storage.

Objects are keyed by a 64-bit hash of their payload, so uploading the
same bytes twice stores them once. The hash is BLAKE2b truncated to
8 bytes: fast, deterministic across processes, and good enough to make
accidental collisions vanishingly rare. It is not a security control.
A collision between two different payloads silently replaces the
earlier one; that is an accepted risk for short-lived media.

Storage knows nothing about handles. Handle lifecycle lives in
MediaManager.
"""

import hashlib
import logging
from typing import Generic, Optional, Protocol, TypeVar

from .models import ObjectId, StoredObject
from .table import DEFAULT_SHARDS, ConcurrentTable

logger = logging.getLogger(__name__)

M = TypeVar("M")

OBJECT_ID_BYTES = 8


def content_hash(payload: bytes) -> ObjectId:
    """Compute the object id of a payload."""
    digest = hashlib.blake2b(payload, digest_size=OBJECT_ID_BYTES).digest()
    return ObjectId(int.from_bytes(digest, "big"))


class Storage(Protocol[M]):
    """
    Protocol for content-addressed storage backends.

    The metadata type M is fixed per deployment: None, Thumbnail or
    ContentType.
    """

    def store(self, payload: bytes, metadata: M) -> ObjectId:
        """Store a payload and return its content hash."""
        ...

    def retrieve(self, object_id: ObjectId) -> Optional[StoredObject[M]]:
        """Return the stored object, or None if absent."""
        ...

    def contains(self, object_id: ObjectId) -> bool:
        """Check existence without copying the payload."""
        ...

    def delete(self, object_id: ObjectId) -> None:
        """Remove an object unconditionally."""
        ...

    def __len__(self) -> int:
        ...


class MemoryStorage(Generic[M]):
    """
    In-process storage backed by a sharded concurrent table.

    Contents live for the lifetime of the process and are lost on restart,
    together with every handle pointing at them.
    """

    def __init__(self, shards: int = DEFAULT_SHARDS) -> None:
        self._objects: ConcurrentTable[ObjectId, StoredObject[M]] = ConcurrentTable(shards)

    def store(self, payload: bytes, metadata: M) -> ObjectId:
        """
        Store a payload under its content hash.

        Overwrites any existing entry with the same hash. For identical
        content this is a no-op in effect, so concurrent uploads of the
        same bytes race harmlessly.
        """
        object_id = content_hash(payload)
        self._objects.insert(object_id, StoredObject(payload=bytes(payload), metadata=metadata))

        logger.debug(
            "Stored object",
            extra={"object_id": f"{object_id:016x}", "size_bytes": len(payload)},
        )

        return object_id

    def retrieve(self, object_id: ObjectId) -> Optional[StoredObject[M]]:
        return self._objects.get(object_id)

    def contains(self, object_id: ObjectId) -> bool:
        return object_id in self._objects

    def delete(self, object_id: ObjectId) -> None:
        self._objects.remove(object_id)

    def __len__(self) -> int:
        return len(self._objects)
