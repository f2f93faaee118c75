"""
Sharded concurrent hash table.

Both the binding table and the blob table are shared by every request
and every pending expiration. A single dict behind a single lock would
serialize all of them, so keys are spread over independent shards, each
with its own lock. Operations on keys in different shards never wait on
each other; every operation on a single key is atomic.

Uploads are handled on the event loop but image decoding runs in worker
threads, and callers are free to use the table from threads directly, so
the locks are real threading locks rather than relying on the GIL.
"""

import threading
from typing import Generic, Hashable, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

DEFAULT_SHARDS = 16


class _Shard(Generic[K, V]):
    __slots__ = ("lock", "items")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.items: dict[K, V] = {}


class ConcurrentTable(Generic[K, V]):
    """Dict-like table with per-shard locking."""

    def __init__(self, shards: int = DEFAULT_SHARDS) -> None:
        if shards < 1:
            raise ValueError("shards must be at least 1")
        self._shards: tuple[_Shard[K, V], ...] = tuple(_Shard() for _ in range(shards))

    def _shard(self, key: K) -> _Shard[K, V]:
        return self._shards[hash(key) % len(self._shards)]

    def get(self, key: K) -> Optional[V]:
        shard = self._shard(key)
        with shard.lock:
            return shard.items.get(key)

    def insert(self, key: K, value: V) -> None:
        """Insert or overwrite."""
        shard = self._shard(key)
        with shard.lock:
            shard.items[key] = value

    def insert_if_absent(self, key: K, value: V) -> bool:
        """
        Insert only when the key is not present.

        Returns True if this call created the entry. The check and the
        insert happen under the same lock, so of two racing callers with
        the same key exactly one wins.
        """
        shard = self._shard(key)
        with shard.lock:
            if key in shard.items:
                return False
            shard.items[key] = value
            return True

    def remove(self, key: K) -> Optional[V]:
        """Remove the key if present and return its value."""
        shard = self._shard(key)
        with shard.lock:
            return shard.items.pop(key, None)

    def __contains__(self, key: object) -> bool:
        shard = self._shard(key)  # type: ignore[arg-type]
        with shard.lock:
            return key in shard.items

    def __len__(self) -> int:
        # Not a snapshot: shards are counted one at a time
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.items)
        return total
