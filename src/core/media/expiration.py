"""
One-shot expiration timers for media handles.

Every upload schedules exactly one deferred delete, independent of all
other uploads. The TTL is the same for every object, so a timer per
handle behaves like a periodic sweep without needing a priority queue.

There is no way to cancel, extend or shorten the expiration of a single
handle. The scheduler itself owns its timers, though: shutdown() cancels
whatever is still pending so the process can stop deterministically.
Timers are in-process only; a restart loses them along with the data.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Union

from .manager import MediaManager
from .models import MediaId

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=1)


class ExpirationScheduler:
    """
    Deletes handles from a MediaManager after a fixed delay.

    Must be used from within a running event loop.
    """

    def __init__(
        self,
        manager: MediaManager,
        ttl: Union[timedelta, float] = DEFAULT_TTL,
    ) -> None:
        self._manager = manager
        self._ttl = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
        if self._ttl < 0:
            raise ValueError("ttl cannot be negative")
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def pending(self) -> int:
        """Number of expirations that have not fired yet."""
        return len(self._tasks)

    @property
    def closed(self) -> bool:
        return self._closed

    def schedule(
        self,
        media_id: MediaId,
        delay: Union[timedelta, float, None] = None,
    ) -> None:
        """
        Schedule media_id for deletion after delay (default: the TTL).

        Fire and forget from the caller's point of view. The task is kept
        referenced here until it completes so it cannot be garbage
        collected mid-sleep.
        """
        if self._closed:
            raise RuntimeError("Expiration scheduler is shut down")

        if delay is None:
            seconds = self._ttl
        elif isinstance(delay, timedelta):
            seconds = delay.total_seconds()
        else:
            seconds = float(delay)

        task = asyncio.get_running_loop().create_task(
            self._expire(media_id, seconds),
            name=f"expire-{media_id.hex}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.debug(
            "Scheduled expiration",
            extra={"media_id": media_id.hex, "delay_seconds": seconds},
        )

    async def _expire(self, media_id: MediaId, seconds: float) -> None:
        await asyncio.sleep(seconds)
        self._manager.delete(media_id)
        logger.info("Media expired", extra={"media_id": media_id.hex})

    async def shutdown(self) -> int:
        """
        Cancel all pending expirations and wait for them to finish.

        Returns the number of expirations that were cancelled. Safe to
        call more than once.
        """
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.info("Expiration scheduler shut down", extra={"cancelled": len(tasks)})

        return len(tasks)
