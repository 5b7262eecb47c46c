import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..abstractions.connector import SyncRunner
from ..core.errors import ConnectorError, SyncAlreadyRunningError
from ..data.models import Source, SourceType, StepState, SyncQueueEntry
from ..data.repository import Repository

logger = logging.getLogger(__name__)


class RepositorySyncRunner(SyncRunner):
    """Starts the first sync of a source and waits until it leaves the running state."""

    def __init__(
        self,
        repository: Repository,
        connector_api=None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        interval: float = 5.0,
    ):
        self.repository = repository
        self.connector_api = connector_api
        self._sleep = sleep
        self.interval = interval

    async def start(self, source: Source):
        is_connector = source.type == SourceType.NANGO.value
        if is_connector and self.connector_api is None:
            raise ConnectorError("No connector is configured")

        try:
            await self.repository.enqueue_sync(source.id)
        except SyncAlreadyRunningError:
            logger.info(f"Source {source.id} is already syncing, following the running sync")
            return

        if is_connector:
            try:
                await self.connector_api.trigger_sync(
                    source.data["integration_id"],
                    source.data["connection_id"],
                )
            except Exception:
                # Leave no running entry behind for a sync that never started
                await self.repository.cancel_sync(source.id)
                raise

    async def wait(self, source: Source) -> Optional[SyncQueueEntry]:
        while True:
            entry = await self.repository.get_latest_sync_queue(source.id)
            if entry is None or not entry.is_running:
                return entry
            await self._sleep(self.interval)

    async def run(self, source: Source, state: StepState, on_complete: Callable[[], None]):
        if state != StepState.IN_PROGRESS:
            return

        await self.start(source)
        entry = await self.wait(source)
        logger.info(f"Sync of source {source.id} finished with status {entry.status if entry else 'unknown'}")
        on_complete()
