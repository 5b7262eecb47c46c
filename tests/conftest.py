"""Shared fakes for the view model, provider and web service tests"""

import asyncio
import os
from datetime import datetime, timezone
from typing import List, Optional

import pytest

# The web service settings require a secret before the app is imported
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-at-least-32-characters")
os.environ.setdefault("STRUCTURED_LOGGING", "false")

from console_core.abstractions.connector import ConnectorClient
from console_core.abstractions.providers import (
    FilesApi,
    FilesProvider,
    Notifier,
    SourcesProvider,
    UsageProvider,
)
from console_core.core.file_browser import next_sort
from console_core.core.source_registry import generate_unique_name, source_names
from console_core.data.models import (
    FileRecord,
    Source,
    SourceType,
    SyncQueueEntry,
    SyncQueueStatus,
    UsageSnapshot,
)


async def settle(rounds: int = 20):
    """Let pending tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    """Virtual time for code that sleeps through an injected sleep function."""

    def __init__(self):
        self.now = 0.0
        self._sleepers = []

    async def sleep(self, seconds: float):
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.now + seconds, future))
        await future

    async def advance(self, seconds: float):
        target = self.now + seconds
        while True:
            await settle()
            self._sleepers = [(t, f) for t, f in self._sleepers if not f.done()]
            due = sorted((s for s in self._sleepers if s[0] <= target), key=lambda s: s[0])
            if not due:
                break
            wake, future = due[0]
            self._sleepers.remove((wake, future))
            self.now = wake
            future.set_result(None)
        self.now = target
        await settle()


class FakeNotifier(Notifier):
    def __init__(self, calls: Optional[list] = None):
        self.messages = []
        self.calls = calls if calls is not None else []

    def _record(self, kind: str, message: str):
        self.messages.append((kind, message))
        self.calls.append(f"notify.{kind}")

    def success(self, message: str):
        self._record("success", message)

    def error(self, message: str):
        self._record("error", message)

    def info(self, message: str):
        self._record("info", message)


class FakeSourcesProvider(SourcesProvider):
    def __init__(self, sources: Optional[List[Source]] = None, queues: Optional[List[SyncQueueEntry]] = None):
        self.sources = list(sources or [])
        self.latest_sync_queues = list(queues or [])
        self.loading = False
        self.next_queues: Optional[List[SyncQueueEntry]] = None
        self.mutate_count = 0
        self.synced: List[List[Source]] = []
        self.stopped: List[Source] = []
        self.sync_error: Optional[Exception] = None

    async def mutate(self):
        self.mutate_count += 1
        if self.next_queues is not None:
            self.latest_sync_queues = self.next_queues
            self.next_queues = None

    async def sync_sources(self, sources: List[Source]):
        if self.sync_error:
            raise self.sync_error
        self.synced.append(list(sources))
        for source in sources:
            self.latest_sync_queues = [q for q in self.latest_sync_queues if q.source_id != source.id]
            self.latest_sync_queues.append(running(source.id))

    async def stop_sync(self, source: Source):
        self.stopped.append(source)
        self.next_queues = [
            q for q in self.latest_sync_queues if q.source_id != source.id
        ] + [SyncQueueEntry(id=f"q-{source.id}", source_id=source.id, status=SyncQueueStatus.CANCELED.value)]

    def generate_unique_name(self, integration_id: str) -> str:
        return generate_unique_name(integration_id, source_names(self.sources))


class FakeFilesProvider(FilesProvider):
    def __init__(self, files: Optional[List[FileRecord]] = None, calls: Optional[list] = None, page_size: int = 50):
        self.paginated_files = list(files or [])
        self.loading = False
        self.page = 0
        self.page_size = page_size
        self.has_more_pages = False
        self.sorting = None
        self.source_ids_filter: List[str] = []
        self.num_files = len(self.paginated_files)
        self.num_files_with_filters = len(self.paginated_files)
        self.calls = calls if calls is not None else []
        self.fetch_count = 0
        self.mutated_with: List[List[FileRecord]] = []

    async def mutate(self, data: Optional[List[FileRecord]] = None):
        if data is not None:
            self.mutated_with.append(list(data))
            self.paginated_files = list(data)
            self.calls.append("files.mutate(data)")
        else:
            self.fetch_count += 1
            self.calls.append("files.mutate")

    async def set_page(self, page: int):
        self.page = page
        self.calls.append(f"files.set_page({page})")

    async def toggle_sorting(self, column, default_direction):
        self.sorting = next_sort(self.sorting, column, default_direction)

    def get_sort_order(self, column):
        if self.sorting and self.sorting.column == column:
            return self.sorting.direction
        return None

    async def set_source_ids_filter(self, source_ids: List[str]):
        self.source_ids_filter = list(source_ids)
        self.page = 0

    async def mutate_count(self):
        self.calls.append("files.mutate_count")

    async def mutate_count_with_filters(self):
        self.calls.append("files.mutate_count_with_filters")


class FakeUsageProvider(UsageProvider):
    def __init__(self, usage: Optional[UsageSnapshot] = None, calls: Optional[list] = None):
        self.usage = usage or UsageSnapshot(num_tokens_used=0, num_tokens_allowance=1000)
        self.calls = calls if calls is not None else []
        self.mutate_count = 0

    async def mutate(self):
        self.mutate_count += 1
        self.calls.append("usage.mutate")


class FakeFilesApi(FilesApi):
    def __init__(self, calls: Optional[list] = None, error: Optional[Exception] = None):
        self.calls = calls if calls is not None else []
        self.error = error
        self.deleted: List[List[str]] = []

    async def delete_files(self, project_id: str, file_ids: List[str]):
        self.calls.append("api.delete_files")
        if self.error:
            raise self.error
        self.deleted.append(list(file_ids))


class FakeConnector(ConnectorClient):
    def __init__(self, result=None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.requests = []

    async def create_connection(self, project_id, integration_id, name, params):
        self.requests.append((project_id, integration_id, name, params))
        if self.error:
            raise self.error
        return self.result


def make_source(source_id: str, source_type: SourceType = SourceType.FILE_UPLOAD, **data) -> Source:
    return Source(id=source_id, project_id="proj-1", type=source_type.value, data=data)


def make_file(file_id: str, source_id: str, path: Optional[str] = None, **meta) -> FileRecord:
    return FileRecord(
        id=file_id,
        source_id=source_id,
        path=path or f"/docs/{file_id}.md",
        meta=meta,
        updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def running(source_id: str) -> SyncQueueEntry:
    return SyncQueueEntry(id=f"q-{source_id}", source_id=source_id, status=SyncQueueStatus.RUNNING.value)


def complete(source_id: str) -> SyncQueueEntry:
    return SyncQueueEntry(id=f"q-{source_id}", source_id=source_id, status=SyncQueueStatus.COMPLETE.value)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def calls():
    return []
