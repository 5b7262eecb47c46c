"""
File browser view model.

Presents a paginated, server-sorted, source-filtered view of the indexed
files joined with their sources, together with the source panel and its
sync status. Row selection is limited to files whose source type allows
bulk deletion. While any source is syncing, files and usage are
refreshed in the background by a SyncStatusPoller.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Set

from ..abstractions.providers import FilesApi, FilesProvider, Notifier, SourcesProvider, UsageProvider
from ..data.models import FileRecord, FileSort, SortDirection, Source, SyncQueueEntry, SyncQueueStatus
from ..utils.text import format_short_datetime, pluralize, relative_time
from .errors import FileDeletionError
from .polling import DEFAULT_POLL_INTERVAL, SyncStatusPoller, is_any_source_syncing
from .source_registry import (
    can_configure_source,
    can_delete_source,
    can_sync_source,
    find_source,
    get_file_title,
    get_icon_for_source,
    get_label_for_source,
)

logger = logging.getLogger(__name__)

COLUMN_SELECT = "select"
COLUMN_NAME = "name"
COLUMN_SOURCE = "source"
COLUMN_UPDATED = "updated"

SORTABLE_COLUMNS = (COLUMN_NAME, COLUMN_UPDATED)

DELETE_DESCRIPTION = "Deleting a file will remove it as a source for future answers."


class CheckboxState(Enum):
    CHECKED = "checked"
    INDETERMINATE = "indeterminate"
    UNCHECKED = "unchecked"


@dataclass(frozen=True)
class Column:
    id: str
    header: str
    sortable: bool
    visible: bool = True


@dataclass
class FileRow:
    id: str
    title: str
    source_label: str
    source_icon: str
    updated: str
    selectable: bool
    selected: bool


@dataclass
class SourceItem:
    source: Source
    label: str
    icon: str
    can_configure: bool
    can_sync: bool
    sync_status: Optional[str]
    status_message: str


@dataclass
class EmptyState:
    title: str
    description: str
    action: Optional[str] = None
    loading: bool = False


def default_sort_direction(column: str) -> SortDirection:
    return SortDirection.ASC if column == COLUMN_NAME else SortDirection.DESC


def next_sort(current: Optional[FileSort], column: str, default_direction: SortDirection) -> FileSort:
    """A new column starts at its default direction; the same column flips."""
    if current is None or current.column != column:
        return FileSort(column, default_direction)
    flipped = SortDirection.DESC if current.direction == SortDirection.ASC else SortDirection.ASC
    return FileSort(column, flipped)


def sync_status_message(entry: Optional[SyncQueueEntry]) -> str:
    status = entry.status if entry else None
    if status == SyncQueueStatus.RUNNING.value:
        return f"Sync started at {format_short_datetime(entry.created_at)}"
    if status == SyncQueueStatus.CANCELED.value:
        return "Sync canceled"
    if status == SyncQueueStatus.ERRORED.value:
        return "Sync failed"
    if status == SyncQueueStatus.COMPLETE.value:
        if entry.ended_at:
            return f"Sync completed at {format_short_datetime(entry.ended_at)}"
        return "Sync completed"
    return "The source has not yet been synced"


class FileBrowser:
    def __init__(
        self,
        project_id: Optional[str],
        files: FilesProvider,
        sources: SourcesProvider,
        usage: UsageProvider,
        files_api: FilesApi,
        notifier: Notifier,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.project_id = project_id
        self.files = files
        self.sources = sources
        self.usage = usage
        self.files_api = files_api
        self.notifier = notifier
        self.row_selection: Set[str] = set()
        self.is_deleting = False
        self.poller = SyncStatusPoller(self._poll, interval=poll_interval, sleep=sleep)
        self._evaluation: Optional[asyncio.Task] = None

    # =====================================================
    # Lifecycle and refresh
    # =====================================================

    async def start(self):
        await self.sources.mutate()
        await self.files.mutate_count()
        await self.files.mutate_count_with_filters()
        await self.on_sync_queues_changed()

    async def close(self):
        if self._evaluation and not self._evaluation.done():
            self._evaluation.cancel()
        self._evaluation = None
        await self.poller.close()

    async def refresh(self):
        """Re-fetch the current page of files and the usage stats."""
        await self.files.mutate()
        await self.usage.mutate()
        self._prune_selection()

    async def on_sync_queues_changed(self):
        await self.poller.update(self.sources.latest_sync_queues)

    async def _poll(self):
        await self.refresh()
        await self.sources.mutate()
        if self.poller.active and not self.is_one_source_syncing:
            # Must run outside the polling task, which the poller cancels
            self._evaluation = asyncio.create_task(self.on_sync_queues_changed())

    @property
    def is_one_source_syncing(self) -> bool:
        return is_any_source_syncing(self.sources.latest_sync_queues)

    # =====================================================
    # Columns and rows
    # =====================================================

    def source_for(self, file: FileRecord) -> Optional[Source]:
        return find_source(self.sources.sources, file.source_id)

    def can_select(self, file: FileRecord) -> bool:
        source = self.source_for(file)
        return source is not None and can_delete_source(source.type)

    @property
    def page_files(self) -> List[FileRecord]:
        return list(self.files.paginated_files or [])

    @property
    def page_has_selectable_items(self) -> bool:
        return any(self.can_select(f) for f in self.page_files)

    def columns(self) -> List[Column]:
        return [
            Column(COLUMN_SELECT, "", sortable=False, visible=self.page_has_selectable_items),
            Column(COLUMN_NAME, "Title", sortable=True),
            Column(COLUMN_SOURCE, "Source", sortable=False),
            Column(COLUMN_UPDATED, "Updated", sortable=True),
        ]

    def rows(self, now: Optional[datetime] = None) -> List[FileRow]:
        rows = []
        for file in self.page_files:
            source = self.source_for(file)
            selectable = self.can_select(file)
            rows.append(FileRow(
                id=file.id,
                title=get_file_title(file, self.sources.sources),
                # Source may be missing right after it was deleted
                source_label=get_label_for_source(source, False) if source else "",
                source_icon=get_icon_for_source(source) if source else "",
                updated=relative_time(file.updated_at, now),
                selectable=selectable,
                selected=selectable and file.id in self.row_selection,
            ))
        return rows

    # =====================================================
    # Selection
    # =====================================================

    def _selectable_ids(self) -> List[str]:
        return [f.id for f in self.page_files if self.can_select(f)]

    def _prune_selection(self):
        self.row_selection &= set(self._selectable_ids())

    def clear_selection(self):
        self.row_selection.clear()

    def toggle_row(self, file_id: str) -> bool:
        """Toggle one row; returns False when the row cannot be selected."""
        file = next((f for f in self.page_files if f.id == file_id), None)
        if file is None or not self.can_select(file):
            return False
        if file_id in self.row_selection:
            self.row_selection.discard(file_id)
        else:
            self.row_selection.add(file_id)
        return True

    def toggle_all(self):
        selectable = self._selectable_ids()
        if selectable and all(i in self.row_selection for i in selectable):
            self.row_selection.clear()
        else:
            self.row_selection = set(selectable)

    def header_checkbox_state(self) -> CheckboxState:
        selectable = self._selectable_ids()
        selected = [i for i in selectable if i in self.row_selection]
        if selectable and len(selected) == len(selectable):
            return CheckboxState.CHECKED
        if selected:
            return CheckboxState.INDETERMINATE
        return CheckboxState.UNCHECKED

    @property
    def selected_ids(self) -> List[str]:
        return [i for i in self._selectable_ids() if i in self.row_selection]

    @property
    def num_selected(self) -> int:
        return len(self.selected_ids)

    def selection_summary(self) -> str:
        return f"{pluralize(self.num_selected, 'file', 'files')} selected"

    # =====================================================
    # Sorting
    # =====================================================

    async def toggle_sorting(self, column: str) -> bool:
        if column not in SORTABLE_COLUMNS:
            return False
        await self.files.toggle_sorting(column, default_sort_direction(column))
        self.clear_selection()
        return True

    def sort_glyph(self, column: str) -> str:
        if column == COLUMN_SELECT:
            return ""
        order = self.files.get_sort_order(column)
        if order == SortDirection.ASC:
            return "↑"
        if order == SortDirection.DESC:
            return "↓"
        return ""

    # =====================================================
    # Source filter
    # =====================================================

    def filter_options(self) -> List[str]:
        return [get_label_for_source(s, False) for s in self.sources.sources]

    def checked_filter_indices(self) -> List[int]:
        ids = [s.id for s in self.sources.sources]
        return [ids.index(i) for i in self.files.source_ids_filter if i in ids]

    def active_filter_label(self) -> Optional[str]:
        if not self.files.source_ids_filter:
            return None
        first = find_source(self.sources.sources, self.files.source_ids_filter[0])
        if first is None:
            return None
        return get_label_for_source(first, False)

    @property
    def filter_plus(self) -> int:
        return max(0, len(self.files.source_ids_filter) - 1)

    async def set_source_filter(self, indices: List[int]):
        sources = self.sources.sources
        ids = [sources[i].id for i in indices if 0 <= i < len(sources)]
        await self.files.set_source_ids_filter(ids)
        self.clear_selection()

    async def clear_source_filter(self):
        await self.files.set_source_ids_filter([])
        self.clear_selection()

    # =====================================================
    # Bulk delete
    # =====================================================

    def delete_confirmation(self):
        return f"Delete {pluralize(self.num_selected, 'file', 'files')}?", DELETE_DESCRIPTION

    async def delete_selected(self) -> int:
        """
        Delete the selected files.

        The held page is only updated once the server confirmed the delete,
        followed by usage, total count and filtered count refreshes, in
        that order. Returns the number of deleted files.
        """
        if not self.project_id:
            return 0

        file_ids = self.selected_ids
        if not file_ids:
            return 0

        self.is_deleting = True
        try:
            try:
                await self.files_api.delete_files(self.project_id, file_ids)
            except Exception as e:
                logger.error(f"Failed to delete {len(file_ids)} files: {e}")
                self.notifier.error(f"Error deleting {pluralize(len(file_ids), 'file', 'files')}")
                raise FileDeletionError(str(e)) from e

            deleted = set(file_ids)
            await self.files.mutate([f for f in self.page_files if f.id not in deleted])
            await self.usage.mutate()
            await self.files.mutate_count()
            await self.files.mutate_count_with_filters()
            self.clear_selection()
            self.notifier.success(f"{pluralize(len(file_ids), 'file', 'files')} deleted")
            return len(file_ids)
        finally:
            self.is_deleting = False

    # =====================================================
    # Pagination
    # =====================================================

    @property
    def can_go_previous(self) -> bool:
        return (self.files.page or 0) != 0 and not self.files.loading

    @property
    def can_go_next(self) -> bool:
        return bool(self.files.has_more_pages) and not self.files.loading

    async def previous_page(self) -> bool:
        if not self.can_go_previous:
            return False
        await self.files.set_page((self.files.page or 0) - 1)
        self.clear_selection()
        return True

    async def next_page(self) -> bool:
        if not self.can_go_next:
            return False
        await self.files.set_page((self.files.page or 0) + 1)
        self.clear_selection()
        return True

    def range_text(self) -> Optional[str]:
        total = self.files.num_files_with_filters
        if total <= 0:
            return None
        page = self.files.page or 0
        start = page * self.files.page_size + 1
        end = min(total, (page + 1) * self.files.page_size)
        return f"Viewing {start}–{end} of {pluralize(total, 'result', 'results')}"

    # =====================================================
    # Notes and empty states
    # =====================================================

    def upgrade_note(self) -> Optional[str]:
        usage = self.usage.usage
        if self.files.loading or usage.can_add_more_content:
            return None
        return (
            f"You have reached your quota of indexed content "
            f"({usage.num_tokens_allowance} tokens) on this plan. "
            f"Please upgrade your plan to index more documents."
        )

    @property
    def project_has_files(self) -> bool:
        return self.files.num_files > 0

    def empty_state(self) -> Optional[EmptyState]:
        if self.project_has_files or self.files.loading:
            return None
        if not self.sources.sources:
            return EmptyState(
                title="Start by connecting a source",
                description=(
                    "Once you connect a source, you can start using it as "
                    "context for your agents and chatbots."
                ),
            )
        return EmptyState(
            title=f"Sync {'sources' if len(self.sources.sources) > 1 else 'source'}",
            description=(
                "Once a source is synced, it will appear here and you can "
                "start using it as context for your agents and chatbots."
            ),
            action="Sync now",
            loading=self.is_one_source_syncing,
        )

    # =====================================================
    # Source panel
    # =====================================================

    def source_items(self) -> List[SourceItem]:
        items = []
        for source in self.sources.sources:
            entry = self.sources.latest_sync_queue(source.id)
            items.append(SourceItem(
                source=source,
                label=get_label_for_source(source, False),
                icon=get_icon_for_source(source),
                can_configure=can_configure_source(source.type),
                can_sync=can_sync_source(source.type),
                sync_status=entry.status if entry else None,
                status_message=sync_status_message(entry),
            ))
        return items

    def current_status(self, source: Source) -> Optional[str]:
        entry = self.sources.latest_sync_queue(source.id)
        return entry.status if entry else None

    def can_configure(self, source: Source) -> bool:
        if not can_configure_source(source.type):
            self.notifier.error("This source cannot be configured")
            return False
        return True

    async def sync_source(self, source: Source) -> bool:
        if self.current_status(source) == SyncQueueStatus.RUNNING.value:
            return False
        return await self._sync([source])

    async def sync_all_sources(self) -> bool:
        return await self._sync(list(self.sources.sources))

    async def _sync(self, sources: List[Source]) -> bool:
        try:
            await self.sources.sync_sources(sources)
        except Exception as e:
            logger.error(f"Failed to start sync: {e}")
            self.notifier.error("Error syncing source")
            return False
        await self.on_sync_queues_changed()
        return True

    async def stop_sync(self, source: Source) -> bool:
        """Stop a running sync; not available unless the source is syncing."""
        if self.current_status(source) != SyncQueueStatus.RUNNING.value:
            return False
        try:
            await self.sources.stop_sync(source)
        except Exception as e:
            logger.error(f"Failed to stop sync of source {source.id}: {e}")
            self.notifier.error("Error stopping sync")
            return False
        await self.sources.mutate()
        await self.on_sync_queues_changed()
        return True
