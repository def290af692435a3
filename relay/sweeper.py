"""Background eviction of expired objects."""

import asyncio
import contextlib
import logging

from relay.errors import StorageFailure
from relay.store import ObjectStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Periodically removes every record whose lifetime has elapsed."""

    def __init__(self, store: ObjectStore, interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.store = store
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    def sweep_once(self, now: float | None = None) -> int:
        """Evict expired records and return how many were removed.

        A record whose bytes cannot be removed stays registered and is
        retried on the next tick.
        """
        evicted = 0
        for object_id in self.store.expired_ids(now):
            try:
                if self.store.delete(object_id):
                    evicted += 1
            except StorageFailure as exc:
                logger.warning(f"Failed to evict {object_id}, will retry: {exc}")
        if evicted:
            logger.info(f"Evicted {evicted} expired objects")
        return evicted

    async def start(self) -> None:
        if self._running:
            logger.warning("Sweeper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Expiry sweeper started (interval {self.interval_seconds}s)")

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("Expiry sweeper stopped")

    async def _loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval_seconds)
            try:
                await asyncio.to_thread(self.sweep_once)
            except Exception as e:
                logger.error(f"Error in sweep tick: {e}", exc_info=True)
