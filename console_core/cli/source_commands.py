"""
CLI commands for managing the sources of a project
"""

import click
from rich.table import Table

from ..core.errors import SourceNotFoundError, SyncNotRunningError, ValidationError
from ..core.file_browser import FileBrowser, sync_status_message
from ..core.source_registry import (
    SalesforceEnvironment,
    can_sync_source,
    get_icon_for_source,
    get_label_for_source,
)
from ..core.wizard import OnboardingWizard
from ..data.validators import validate_instance_url
from ..implementations.console_notifier import RichNotifier
from ..implementations.nango_connector import NangoConfig, NangoConnectorApi, NangoConnectorClient
from ..implementations.repository_providers import (
    RepositoryFilesApi,
    RepositoryFilesProvider,
    RepositorySourcesProvider,
    RepositoryUsageProvider,
)
from ..implementations.salesforce_settings import SalesforceKnowledgeMetadata, SalesforceKnowledgeSettings
from ..implementations.sync_runner import RepositorySyncRunner
from .helpers import ask, confirm, console, get_project_id, open_repository, run_async


@click.group()
def sources():
    """Source management commands."""
    pass


@sources.command('list')
@click.pass_context
def list_sources(ctx):
    """List the sources of the project with their sync status."""
    project_id = get_project_id(ctx)

    async def run_list():
        async with open_repository() as repository:
            provider = RepositorySourcesProvider(repository, project_id)
            await provider.mutate()

            if not provider.sources:
                console.print("[yellow]No sources found[/yellow]")
                return

            table = Table(
                title="Sources",
                style="cyan",
                header_style="bold magenta",
            )
            table.add_column("ID", style="dim")
            table.add_column("Name", style="green")
            table.add_column("Type", style="blue")
            table.add_column("Icon", style="blue")
            table.add_column("Status", style="yellow")

            for source in provider.sources:
                entry = provider.latest_sync_queue(source.id)
                table.add_row(
                    source.id,
                    get_label_for_source(source, False),
                    source.type,
                    get_icon_for_source(source),
                    sync_status_message(entry) if can_sync_source(source.type) else "",
                )

            console.print(table)

    run_async(run_list())


async def _prompt_metadata(current: SalesforceKnowledgeMetadata):
    if not await confirm("Configure which Knowledge articles to index now?", default=True):
        return None

    filters = await ask("Article filter (SOQL WHERE clause, empty for all)", default=current.filters, show_default=False)
    title = await ask("Title field", default=current.mappings.title)
    content = await ask("Content field", default=current.mappings.content)
    path = await ask("Path field", default=current.mappings.path)

    edited = SalesforceKnowledgeMetadata(filters=filters.strip())
    edited.mappings.title = title
    edited.mappings.content = content
    edited.mappings.path = path
    return edited


def _open_link(link: str):
    console.print("\n[bold]Open this link to authorize Salesforce:[/bold]")
    console.print(f"  [cyan]{link}[/cyan]\n")
    console.print("[dim]Waiting for the authorization to complete...[/dim]")


@sources.command('connect-salesforce')
@click.option('--environment',
              type=click.Choice([e.value for e in SalesforceEnvironment]),
              default=SalesforceEnvironment.PRODUCTION.value,
              help='Salesforce environment to connect')
@click.option('--instance-url', required=True, help='Salesforce instance URL, e.g. https://acme.my.salesforce.com')
@click.option('--skip-configuration', is_flag=True, help='Index all articles with the default field mappings')
@click.pass_context
def connect_salesforce(ctx, environment: str, instance_url: str, skip_configuration: bool):
    """Connect Salesforce Knowledge: authorize, configure and run the first sync."""
    project_id = get_project_id(ctx)

    async def run_connect():
        result = validate_instance_url(instance_url, required=True)
        if not result.is_valid:
            raise ValidationError(result.as_dict())

        api = NangoConnectorApi(NangoConfig.from_env())
        try:
            async with open_repository() as repository:
                notifier = RichNotifier(console)
                provider = RepositorySourcesProvider(repository, project_id, connector_api=api)
                await provider.mutate()

                wizard = OnboardingWizard(
                    project_id,
                    connector=NangoConnectorClient(repository, api, _open_link),
                    sources=provider,
                    settings_editor=SalesforceKnowledgeSettings(
                        repository,
                        connector_api=api,
                        prompt=None if skip_configuration else _prompt_metadata,
                    ),
                    sync_runner=RepositorySyncRunner(repository, connector_api=api),
                    notifier=notifier,
                )

                source = await wizard.run(SalesforceEnvironment(environment), instance_url)
                if source is None:
                    raise SystemExit(1)
                if wizard.open:
                    console.print(f"[yellow]Source {source.id} was connected but onboarding did not finish[/yellow]")
                    raise SystemExit(1)

                console.print(f"[green]✓ Source '{get_label_for_source(source, False)}' is ready ({source.id})[/green]")
        finally:
            await api.close()

    run_async(run_connect())


@sources.command()
@click.option('--source-id', multiple=True, help='Source to sync (defaults to all sources)')
@click.pass_context
def sync(ctx, source_id):
    """Start a sync of one, several or all sources."""
    project_id = get_project_id(ctx)

    async def run_sync():
        api = NangoConnectorApi(NangoConfig.from_env())
        try:
            async with open_repository() as repository:
                provider = RepositorySourcesProvider(repository, project_id, connector_api=api)
                browser = FileBrowser(
                    project_id,
                    files=RepositoryFilesProvider(repository, project_id),
                    sources=provider,
                    usage=RepositoryUsageProvider(repository, project_id),
                    files_api=RepositoryFilesApi(repository),
                    notifier=RichNotifier(console),
                )
                await provider.mutate()
                try:
                    if source_id:
                        selected = [s for s in provider.sources if s.id in source_id]
                        missing = set(source_id) - {s.id for s in selected}
                        if missing:
                            raise SourceNotFoundError(sorted(missing)[0])
                        for source in selected:
                            if await browser.sync_source(source):
                                console.print(f"[green]✓ Sync started for {get_label_for_source(source, False)}[/green]")
                            else:
                                console.print(f"[yellow]{get_label_for_source(source, False)} is already syncing[/yellow]")
                    elif await browser.sync_all_sources():
                        console.print("[green]✓ Sync started for all sources[/green]")
                finally:
                    await browser.close()
        finally:
            await api.close()

    run_async(run_sync())


@sources.command('stop-sync')
@click.option('--source-id', required=True, help='Source whose sync should be stopped')
@click.pass_context
def stop_sync(ctx, source_id: str):
    """Stop the running sync of a source."""
    project_id = get_project_id(ctx)

    async def run_stop():
        async with open_repository() as repository:
            provider = RepositorySourcesProvider(repository, project_id)
            await provider.mutate()
            source = next((s for s in provider.sources if s.id == source_id), None)
            if source is None:
                raise SourceNotFoundError(source_id)
            try:
                await provider.stop_sync(source)
            except SyncNotRunningError:
                console.print("[yellow]The source is not syncing[/yellow]")
                return
            console.print(f"[green]✓ Sync of {get_label_for_source(source, False)} stopped[/green]")

    run_async(run_stop())


@sources.command()
@click.option('--source-id', required=True, help='Source to delete')
@click.option('--force', is_flag=True, help='Skip confirmation prompt')
@click.pass_context
def delete(ctx, source_id: str, force: bool):
    """Delete a source together with its files."""
    project_id = get_project_id(ctx)

    async def run_delete():
        async with open_repository() as repository:
            source = await repository.get_source(source_id)
            if source is None or source.project_id != project_id:
                raise SourceNotFoundError(source_id)

            label = get_label_for_source(source, False)
            if not force and not await confirm(f"Delete source '{label}' and all of its files?"):
                console.print("Operation cancelled by user.")
                return

            await repository.delete_source(source_id)
            console.print(f"[green]✓ Deleted source '{label}'[/green]")

    run_async(run_delete())
