"""
Repository-backed providers for the file browser and the wizard.

Each provider holds the latest snapshot it fetched and only changes it
through an explicit mutate()/refetch, so the view models never mutate
shared collections directly.
"""

import logging
from typing import List, Optional

from ..abstractions.providers import FilesApi, FilesProvider, SourcesProvider, UsageProvider
from ..core.errors import ConnectorError, SyncAlreadyRunningError
from ..core.file_browser import next_sort
from ..core.source_registry import can_sync_source, generate_unique_name, source_names
from ..data.models import FileRecord, FilesQuery, FileSort, SortDirection, Source, SourceType, SyncQueueEntry, UsageSnapshot
from ..data.repository import Repository

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
DEFAULT_TOKEN_ALLOWANCE = 1_000_000


class RepositorySourcesProvider(SourcesProvider):
    def __init__(self, repository: Repository, project_id: str, connector_api=None):
        self.repository = repository
        self.project_id = project_id
        self.connector_api = connector_api
        self.sources: List[Source] = []
        self.latest_sync_queues: List[SyncQueueEntry] = []
        self.loading = False

    async def mutate(self):
        self.loading = True
        try:
            self.sources = await self.repository.list_sources(self.project_id)
            self.latest_sync_queues = await self.repository.latest_sync_queues(self.project_id)
        finally:
            self.loading = False

    async def sync_sources(self, sources: List[Source]):
        """
        Enqueue a sync for each syncable source and trigger connector sources.

        A connector source is only enqueued when a connector is configured,
        and its queue entry is canceled again if the trigger fails. The
        remaining sources are still synced and the snapshot refreshed before
        the first failure is raised.
        """
        failures: List[Exception] = []
        for source in sources:
            if not can_sync_source(source.type):
                logger.debug(f"Skipping sync of {source.type} source {source.id}")
                continue
            if source.type == SourceType.NANGO.value and self.connector_api is None:
                logger.warning(f"No connector configured, cannot sync source {source.id}")
                failures.append(ConnectorError("No connector is configured"))
                continue
            try:
                await self.repository.enqueue_sync(source.id)
            except SyncAlreadyRunningError:
                logger.info(f"Source {source.id} is already syncing")
                continue
            if source.type == SourceType.NANGO.value:
                try:
                    await self.connector_api.trigger_sync(
                        source.data["integration_id"],
                        source.data["connection_id"],
                    )
                except Exception as e:
                    logger.error(f"Failed to trigger sync of source {source.id}: {e}")
                    await self.repository.cancel_sync(source.id)
                    failures.append(e)
        await self.mutate()
        if failures:
            raise failures[0]

    async def stop_sync(self, source: Source):
        await self.repository.cancel_sync(source.id)

    def generate_unique_name(self, integration_id: str) -> str:
        return generate_unique_name(integration_id, source_names(self.sources))


class RepositoryFilesProvider(FilesProvider):
    def __init__(self, repository: Repository, project_id: str, page_size: int = DEFAULT_PAGE_SIZE):
        self.repository = repository
        self.project_id = project_id
        self.page = 0
        self.page_size = page_size
        self.sorting: Optional[FileSort] = None
        self.source_ids_filter: List[str] = []
        self.paginated_files: Optional[List[FileRecord]] = None
        self.has_more_pages = False
        self.loading = False
        self.num_files = 0
        self.num_files_with_filters = 0

    @property
    def query(self) -> FilesQuery:
        return FilesQuery(
            page=self.page,
            page_size=self.page_size,
            sort=self.sorting,
            source_ids=list(self.source_ids_filter),
        )

    async def mutate(self, data: Optional[List[FileRecord]] = None):
        if data is not None:
            self.paginated_files = list(data)
            return

        self.loading = True
        try:
            result = await self.repository.fetch_files(self.project_id, self.query)
            self.paginated_files = result.files
            self.has_more_pages = result.has_more_pages
        finally:
            self.loading = False

    async def set_page(self, page: int):
        self.page = max(0, page)
        await self.mutate()

    async def toggle_sorting(self, column: str, default_direction: SortDirection):
        self.sorting = next_sort(self.sorting, column, default_direction)
        self.page = 0
        await self.mutate()

    def get_sort_order(self, column: str) -> Optional[SortDirection]:
        if self.sorting and self.sorting.column == column:
            return self.sorting.direction
        return None

    async def set_source_ids_filter(self, source_ids: List[str]):
        self.source_ids_filter = list(source_ids)
        self.page = 0
        await self.mutate()
        await self.mutate_count_with_filters()

    async def mutate_count(self):
        self.num_files = await self.repository.count_files(self.project_id)

    async def mutate_count_with_filters(self):
        self.num_files_with_filters = await self.repository.count_files(
            self.project_id, self.source_ids_filter or None
        )


class RepositoryUsageProvider(UsageProvider):
    def __init__(self, repository: Repository, project_id: str, allowance: int = DEFAULT_TOKEN_ALLOWANCE):
        self.repository = repository
        self.project_id = project_id
        self.allowance = allowance
        self.usage = UsageSnapshot(num_tokens_allowance=allowance)

    async def mutate(self):
        self.usage = await self.repository.get_usage(self.project_id, self.allowance)


class RepositoryFilesApi(FilesApi):
    def __init__(self, repository: Repository):
        self.repository = repository

    async def delete_files(self, project_id: str, file_ids: List[str]):
        await self.repository.delete_files(project_id, file_ids)
