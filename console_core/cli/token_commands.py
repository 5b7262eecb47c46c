"""
CLI commands for the API tokens of a project
"""

import click
from rich.table import Table

from ..utils.text import format_short_datetime
from .helpers import confirm, console, get_project_id, open_repository, run_async


@click.group()
def tokens():
    """API token commands."""
    pass


@tokens.command('list')
@click.pass_context
def list_tokens(ctx):
    """List the API tokens of the project."""
    project_id = get_project_id(ctx)

    async def run_list():
        async with open_repository() as repository:
            items = await repository.list_tokens(project_id)
            if not items:
                console.print("[yellow]No API tokens found[/yellow]")
                return

            table = Table(title="API Tokens", style="cyan", header_style="bold magenta")
            table.add_column("ID", style="dim")
            table.add_column("Token", style="green")
            table.add_column("Created", style="yellow")
            for token in items:
                table.add_row(str(token.id), token.value, format_short_datetime(token.inserted_at) or "N/A")
            console.print(table)

    run_async(run_list())


@tokens.command()
@click.pass_context
def create(ctx):
    """Generate a new API token."""
    project_id = get_project_id(ctx)

    async def run_create():
        async with open_repository() as repository:
            token = await repository.create_token(project_id)
            console.print(f"[green]✓ Created API token {token.id}[/green]")
            console.print(f"  [cyan]{token.value}[/cyan]")

    run_async(run_create())


@tokens.command()
@click.option('--token-id', required=True, type=int, help='Token to revoke')
@click.option('--force', is_flag=True, help='Skip confirmation prompt')
@click.pass_context
def delete(ctx, token_id: int, force: bool):
    """Revoke an API token."""
    project_id = get_project_id(ctx)

    async def run_delete():
        if not force and not await confirm(f"Revoke API token {token_id}?"):
            console.print("Operation cancelled by user.")
            return
        async with open_repository() as repository:
            if await repository.delete_token(project_id, token_id):
                console.print(f"[green]✓ Revoked API token {token_id}[/green]")
            else:
                console.print(f"[yellow]API token {token_id} not found[/yellow]")

    run_async(run_delete())
