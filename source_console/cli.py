#!/usr/bin/env python3
"""
Knowledge base source console - CLI Application
"""
import click
import asyncio
import logging
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from rich.logging import RichHandler

from console_core.cli.file_commands import files
from console_core.cli.helpers import console, get_database
from console_core.cli.source_commands import sources
from console_core.cli.token_commands import tokens
from console_core.core.logging_config import configure_app_logging
from console_core.data.schema import create_schema_sql


@click.group()
@click.version_option(version='0.1.0')
@click.option('--verbose', is_flag=True, help='Enable verbose logging (DEBUG level)')
@click.option('--project', '-p', help='Project to operate on (defaults to SOURCE_CONSOLE_PROJECT)')
@click.pass_context
def cli(ctx, verbose, project):
    """Manage the sources, files and API tokens of a knowledge base project."""
    ctx.ensure_object(dict)

    log_level = 'DEBUG' if verbose else os.getenv('SOURCE_CONSOLE_LOG_LEVEL', 'INFO')
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)]
    )

    # Configure application logging
    configure_app_logging(verbose)

    ctx.obj['verbose'] = verbose
    ctx.obj['project'] = project


@cli.command()
def init_db():
    """Create the tables and indexes (idempotent)."""
    async def run_init():
        db = await get_database()
        try:
            statements = [s for s in create_schema_sql().split(';') if s.strip()]
            with console.status("[bold green]Creating tables and indexes..."):
                for i, statement in enumerate(statements):
                    await db.execute(statement)
                    console.print(f"[dim]Executed statement {i+1}/{len(statements)}[/dim]")
            console.print("[green]✓ Database schema created successfully.[/green]")
        except Exception as e:
            console.print(f"[red]Error creating schema: {e}[/red]")
            raise SystemExit(1)
        finally:
            await db.disconnect()

    asyncio.run(run_init())


cli.add_command(sources)
cli.add_command(files)
cli.add_command(tokens)


def main():
    cli()


if __name__ == '__main__':
    main()
