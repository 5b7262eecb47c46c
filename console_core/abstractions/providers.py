from abc import ABC, abstractmethod
from typing import List, Optional

from ..data.models import FileRecord, FileSort, SortDirection, Source, SyncQueueEntry, UsageSnapshot


class SourcesProvider(ABC):
    """Cached view of a project's sources and their latest sync queue entries."""

    sources: List[Source]
    latest_sync_queues: List[SyncQueueEntry]
    loading: bool

    @abstractmethod
    async def mutate(self):
        """Re-fetch sources and sync queue entries."""
        pass

    @abstractmethod
    async def sync_sources(self, sources: List[Source]):
        """Enqueue a sync for each of the given sources."""
        pass

    @abstractmethod
    async def stop_sync(self, source: Source):
        """Request cancellation of the running sync of a source."""
        pass

    @abstractmethod
    def generate_unique_name(self, integration_id: str) -> str:
        """Display name for a new source that no existing source uses."""
        pass

    def latest_sync_queue(self, source_id: str) -> Optional[SyncQueueEntry]:
        return next((q for q in self.latest_sync_queues if q.source_id == source_id), None)


class FilesProvider(ABC):
    """Cached, paginated view of a project's files."""

    paginated_files: Optional[List[FileRecord]]
    loading: bool
    page: int
    page_size: int
    has_more_pages: bool
    sorting: Optional[FileSort]
    source_ids_filter: List[str]
    num_files: int
    num_files_with_filters: int

    @abstractmethod
    async def mutate(self, data: Optional[List[FileRecord]] = None):
        """Replace the held page with data, or re-fetch it when data is None."""
        pass

    @abstractmethod
    async def set_page(self, page: int):
        pass

    @abstractmethod
    async def toggle_sorting(self, column: str, default_direction: SortDirection):
        pass

    @abstractmethod
    def get_sort_order(self, column: str) -> Optional[SortDirection]:
        pass

    @abstractmethod
    async def set_source_ids_filter(self, source_ids: List[str]):
        pass

    @abstractmethod
    async def mutate_count(self):
        """Re-fetch the unfiltered file count."""
        pass

    @abstractmethod
    async def mutate_count_with_filters(self):
        """Re-fetch the file count under the current source filter."""
        pass


class UsageProvider(ABC):
    """Token usage and plan allowance of the project."""

    usage: UsageSnapshot

    @abstractmethod
    async def mutate(self):
        pass


class FilesApi(ABC):

    @abstractmethod
    async def delete_files(self, project_id: str, file_ids: List[str]):
        """Delete files by id, raising on failure."""
        pass


class Notifier(ABC):
    """Transient, dismissable user notifications."""

    @abstractmethod
    def success(self, message: str):
        pass

    @abstractmethod
    def error(self, message: str):
        pass

    @abstractmethod
    def info(self, message: str):
        pass
