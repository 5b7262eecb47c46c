"""
CLI commands for browsing and deleting the indexed files of a project
"""

import logging

import click
from rich.table import Table

from ..core.errors import FileDeletionError
from ..core.file_browser import (
    COLUMN_NAME,
    COLUMN_SELECT,
    COLUMN_UPDATED,
    CheckboxState,
    FileBrowser,
    default_sort_direction,
)
from ..core.source_registry import undeletable_file_ids
from ..data.models import FileSort, SortDirection
from ..implementations.console_notifier import RichNotifier
from ..implementations.nango_connector import NangoConfig, NangoConnectorApi
from ..implementations.repository_providers import (
    DEFAULT_PAGE_SIZE,
    RepositoryFilesApi,
    RepositoryFilesProvider,
    RepositorySourcesProvider,
    RepositoryUsageProvider,
)
from ..utils.text import pluralize
from .helpers import ask, confirm, console, get_project_id, open_repository, run_async

logger = logging.getLogger(__name__)

BROWSE_HELP = """[bold cyan]Commands:[/bold cyan]
  [green]n[/green] / [green]p[/green]          next / previous page
  [green]s name[/green], [green]s updated[/green]  toggle sorting on a column
  [green]f 1 3[/green]          filter by source numbers (see source panel)
  [green]c[/green]              clear the source filter
  [green]x 2[/green]            toggle selection of row 2
  [green]a[/green]              toggle selection of all rows on the page
  [green]d[/green]              delete the selected files
  [green]y 1[/green] / [green]z 1[/green]      sync / stop syncing source 1
  [green]r[/green]              refresh
  [green]q[/green]              quit"""

HEADER_CHECKBOX = {
    CheckboxState.CHECKED: "☑",
    CheckboxState.INDETERMINATE: "⊟",
    CheckboxState.UNCHECKED: "☐",
}


def create_browser(repository, project_id: str, page_size: int = DEFAULT_PAGE_SIZE, connector_api=None) -> FileBrowser:
    return FileBrowser(
        project_id,
        files=RepositoryFilesProvider(repository, project_id, page_size=page_size),
        sources=RepositorySourcesProvider(repository, project_id, connector_api=connector_api),
        usage=RepositoryUsageProvider(repository, project_id),
        files_api=RepositoryFilesApi(repository),
        notifier=RichNotifier(console),
    )


def render_files(browser: FileBrowser):
    empty = browser.empty_state()
    if empty:
        console.print(f"[bold]{empty.title}[/bold]")
        console.print(f"[dim]{empty.description}[/dim]")
        if empty.action:
            label = "Syncing..." if empty.loading else empty.action
            console.print(f"[cyan]{label}[/cyan]")
        return

    table = Table(style="cyan", header_style="bold magenta")
    columns = [c for c in browser.columns() if c.visible]
    for column in columns:
        if column.id == COLUMN_SELECT:
            table.add_column(HEADER_CHECKBOX[browser.header_checkbox_state()])
        else:
            table.add_column(f"{column.header} {browser.sort_glyph(column.id)}".strip())

    for index, row in enumerate(browser.rows(), start=1):
        cells = []
        for column in columns:
            if column.id == COLUMN_SELECT:
                cells.append(f"{index:>2} {'☑' if row.selected else '☐'}" if row.selectable else f"{index:>2}")
            elif column.id == COLUMN_NAME:
                cells.append(row.title)
            elif column.id == COLUMN_UPDATED:
                cells.append(row.updated)
            else:
                cells.append(row.source_label)
        table.add_row(*cells)

    console.print(table)

    range_text = browser.range_text()
    if range_text:
        console.print(f"[dim]{range_text}[/dim]")
    if browser.num_selected:
        console.print(f"[yellow]{browser.selection_summary()}[/yellow]")

    note = browser.upgrade_note()
    if note:
        console.print(f"[red]{note}[/red]")


def render_sources(browser: FileBrowser):
    label = browser.active_filter_label()
    if label:
        plus = f" +{browser.filter_plus}" if browser.filter_plus else ""
        console.print(f"[blue]Filtered by:[/blue] {label}{plus}")

    checked = set(browser.checked_filter_indices())
    for index, item in enumerate(browser.source_items()):
        mark = "*" if index in checked else " "
        status = f"  [dim]{item.status_message}[/dim]" if item.can_sync else ""
        console.print(f" {mark}{index + 1:>2}. {item.label}{status}")


async def _delete_selected(browser: FileBrowser):
    if not browser.num_selected:
        console.print("[yellow]No files selected[/yellow]")
        return

    title, description = browser.delete_confirmation()
    console.print(f"[dim]{description}[/dim]")
    if not await confirm(title):
        return
    try:
        await browser.delete_selected()
    except FileDeletionError:
        logger.debug("Bulk delete failed", exc_info=True)


def _source_at(browser: FileBrowser, args):
    try:
        index = int(args[0]) - 1
    except (IndexError, ValueError):
        return None
    sources = browser.sources.sources
    return sources[index] if 0 <= index < len(sources) else None


async def handle_command(browser: FileBrowser, line: str) -> bool:
    """Apply one browse command; returns False when the user quits."""
    parts = line.strip().split()
    if not parts:
        return True
    command, args = parts[0].lower(), parts[1:]

    if command == "q":
        return False
    if command == "n":
        if not await browser.next_page():
            console.print("[yellow]No next page[/yellow]")
    elif command == "p":
        if not await browser.previous_page():
            console.print("[yellow]No previous page[/yellow]")
    elif command == "s" and args:
        if not await browser.toggle_sorting(args[0]):
            console.print(f"[yellow]Cannot sort by {args[0]}[/yellow]")
    elif command == "f":
        indices = [int(a) - 1 for a in args if a.isdigit()]
        await browser.set_source_filter(indices)
    elif command == "c":
        await browser.clear_source_filter()
    elif command == "x" and args and args[0].isdigit():
        rows = browser.page_files
        index = int(args[0]) - 1
        if not (0 <= index < len(rows)) or not browser.toggle_row(rows[index].id):
            console.print("[yellow]This file cannot be selected[/yellow]")
    elif command == "a":
        browser.toggle_all()
    elif command == "d":
        await _delete_selected(browser)
    elif command in ("y", "z"):
        source = _source_at(browser, args)
        if source is None:
            console.print("[yellow]Unknown source[/yellow]")
        elif command == "y":
            await browser.sync_source(source)
        else:
            await browser.stop_sync(source)
    elif command == "r":
        await browser.refresh()
    else:
        console.print(BROWSE_HELP)
    return True


@click.group()
def files():
    """Indexed file commands."""
    pass


@files.command('list')
@click.option('--page', default=0, type=int, help='Zero-based page index')
@click.option('--page-size', default=DEFAULT_PAGE_SIZE, type=int, help='Files per page')
@click.option('--sort', 'sort_column', type=click.Choice([COLUMN_NAME, COLUMN_UPDATED]), help='Column to sort by')
@click.option('--order', type=click.Choice([d.value for d in SortDirection]), help='Sort direction')
@click.option('--source-id', multiple=True, help='Only show files of these sources')
@click.pass_context
def list_files(ctx, page: int, page_size: int, sort_column: str, order: str, source_id):
    """List one page of the indexed files."""
    project_id = get_project_id(ctx)

    async def run_list():
        async with open_repository() as repository:
            browser = create_browser(repository, project_id, page_size)
            provider = browser.files
            await browser.start()
            try:
                provider.page = max(0, page)
                provider.source_ids_filter = list(source_id)
                if sort_column:
                    direction = SortDirection(order) if order else default_sort_direction(sort_column)
                    provider.sorting = FileSort(sort_column, direction)
                await provider.mutate_count_with_filters()
                await browser.refresh()
                render_files(browser)
            finally:
                await browser.close()

    run_async(run_list())


@files.command()
@click.option('--page-size', default=DEFAULT_PAGE_SIZE, type=int, help='Files per page')
@click.pass_context
def browse(ctx, page_size: int):
    """Interactively browse, sort, filter and delete files."""
    project_id = get_project_id(ctx)

    async def run_browse():
        api = NangoConnectorApi(NangoConfig.from_env())
        try:
            async with open_repository() as repository:
                browser = create_browser(repository, project_id, page_size, connector_api=api)
                await browser.start()
                try:
                    await browser.refresh()
                    console.print(BROWSE_HELP)
                    while True:
                        console.print()
                        render_sources(browser)
                        render_files(browser)
                        line = await ask(">", default="", show_default=False, prompt_suffix=" ")
                        if not await handle_command(browser, line):
                            break
                finally:
                    await browser.close()
        finally:
            await api.close()

    run_async(run_browse())


@files.command()
@click.option('--file-id', multiple=True, required=True, help='File to delete')
@click.option('--force', is_flag=True, help='Skip confirmation prompt')
@click.pass_context
def delete(ctx, file_id, force: bool):
    """Delete files by id."""
    project_id = get_project_id(ctx)

    async def run_delete():
        async with open_repository() as repository:
            ids = list(dict.fromkeys(file_id))
            blocked = undeletable_file_ids(
                await repository.get_files(project_id, ids),
                await repository.list_sources(project_id),
            )
            if blocked:
                raise FileDeletionError(f"Only uploaded files can be deleted, refusing: {', '.join(blocked)}")

            count = len(ids)
            if not force and not await confirm(f"Delete {pluralize(count, 'file', 'files')}?"):
                console.print("Operation cancelled by user.")
                return
            deleted = await repository.delete_files(project_id, ids)
            console.print(f"[green]✓ Deleted {pluralize(deleted, 'file', 'files')}[/green]")

    run_async(run_delete())
