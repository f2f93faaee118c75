"""
Identity manager: external handles bound to stored objects.

Every upload gets its own random MediaId even when its content is already
stored. Deleting a handle removes only the binding; the stored object is
left in place, since other handles may still point at it and bindings are
not reference counted. For content that no handle references any more
this means storage only grows for the lifetime of the process.
"""

import logging
import secrets
from typing import Callable, Generic, Optional, TypeVar

from .models import MediaId, ObjectId, StoredObject
from .storage import Storage
from .table import DEFAULT_SHARDS, ConcurrentTable

logger = logging.getLogger(__name__)

M = TypeVar("M")


class MediaManager(Generic[M]):
    """
    Issues, resolves and revokes media handles.

    Args:
        storage: Content-addressed storage shared with nothing else.
        randbits: Random source for new handles. Defaults to the
            cryptographically secure generator; tests may inject a
            deterministic one.
        shards: Shard count of the binding table.
    """

    def __init__(
        self,
        storage: Storage[M],
        randbits: Callable[[int], int] = secrets.randbits,
        shards: int = DEFAULT_SHARDS,
    ) -> None:
        self._storage = storage
        self._randbits = randbits
        self._bindings: ConcurrentTable[MediaId, ObjectId] = ConcurrentTable(shards)

    @property
    def storage(self) -> Storage[M]:
        return self._storage

    def store(self, payload: bytes, metadata: M) -> MediaId:
        """
        Store a payload and bind it to a fresh handle.

        Handles are resampled until one is not already live. There is no
        retry limit: with 2^64 possible values the loop only spins more
        than once if the live binding count gets anywhere near that space,
        which an in-memory table cannot reach. The insert-if-absent is
        atomic, so two concurrent uploads can never both claim one value.
        """
        object_id = self._storage.store(payload, metadata)

        while True:
            media_id = MediaId.generate(self._randbits)
            if self._bindings.insert_if_absent(media_id, object_id):
                break
            logger.warning("Media id collision, resampling", extra={"media_id": media_id.hex})

        logger.info(
            "Bound media",
            extra={
                "media_id": media_id.hex,
                "object_id": f"{object_id:016x}",
                "size_bytes": len(payload),
            },
        )

        return media_id

    def retrieve(self, media_id: MediaId) -> Optional[StoredObject[M]]:
        """
        Resolve a handle to its stored object.

        A binding whose object has gone missing from storage is reported
        the same way as an unknown handle.
        """
        object_id = self._bindings.get(media_id)
        if object_id is None:
            return None
        return self._storage.retrieve(object_id)

    def contains(self, media_id: MediaId) -> bool:
        object_id = self._bindings.get(media_id)
        if object_id is None:
            return False
        return self._storage.contains(object_id)

    def delete(self, media_id: MediaId) -> None:
        """Revoke a handle. Deleting an unknown handle is a no-op."""
        if self._bindings.remove(media_id) is not None:
            logger.info("Unbound media", extra={"media_id": media_id.hex})

    def __len__(self) -> int:
        return len(self._bindings)
