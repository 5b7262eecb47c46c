"""
Background refresh while a source sync is in progress.

A single supervised task is tied to one condition, "any source is
syncing". The task is armed when the condition turns true and cancelled
(and awaited) when it turns false or when the owner closes.
"""

import asyncio
from typing import Awaitable, Callable, Iterable, Optional

import structlog

from ..data.models import SyncQueueEntry

logger = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL = 5.0


def is_any_source_syncing(latest_sync_queues: Optional[Iterable[SyncQueueEntry]]) -> bool:
    return any(q.is_running for q in (latest_sync_queues or []))


class SyncStatusPoller:
    """Refreshes immediately and then every interval while any sync runs."""

    def __init__(
        self,
        refresh: Callable[[], Awaitable[None]],
        interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.refresh = refresh
        self.interval = interval
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._active: Optional[bool] = None

    @property
    def active(self) -> bool:
        return bool(self._active)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def update(self, latest_sync_queues: Optional[Iterable[SyncQueueEntry]]):
        """Re-evaluate the condition; only a change of its value has an effect."""
        active = is_any_source_syncing(latest_sync_queues)
        if active == self._active:
            return

        self._active = active
        if active:
            logger.info("Source sync in progress, polling for updates", interval=self.interval)
            self._task = asyncio.create_task(self._run())
        else:
            await self._cancel()
            await self.refresh()

    async def close(self):
        """Tear down the polling task without a final refresh."""
        await self._cancel()
        self._active = None

    async def _run(self):
        while True:
            try:
                await self.refresh()
            except Exception as e:
                logger.error("Refresh while polling failed", error=str(e))
            await self._sleep(self.interval)

    async def _cancel(self):
        task, self._task = self._task, None
        if task is None or task.done():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Stopped polling for sync updates")
