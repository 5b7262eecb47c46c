"""
Shared helpers for the CLI command groups
"""
import asyncio
import os
from contextlib import asynccontextmanager
from typing import Optional

import click
from rich.console import Console

from ..core.errors import ConsoleError
from ..data.database import Database, DatabaseConfig
from ..data.repository import Repository

console = Console()


async def get_database() -> Database:
    """Get database connection."""
    config = DatabaseConfig()
    db = Database(config)
    await db.connect()
    return db


@asynccontextmanager
async def open_repository():
    db = await get_database()
    try:
        yield Repository(db)
    finally:
        await db.disconnect()


def get_project_id(ctx: click.Context) -> str:
    """Project selected with --project or SOURCE_CONSOLE_PROJECT."""
    obj = ctx.find_root().obj or {}
    project_id: Optional[str] = obj.get('project') or os.getenv('SOURCE_CONSOLE_PROJECT')
    if not project_id:
        raise click.UsageError("No project selected. Pass --project or set SOURCE_CONSOLE_PROJECT.")
    return project_id


async def ask(text: str, **kwargs):
    """click.prompt without blocking the event loop."""
    return await asyncio.to_thread(click.prompt, text, **kwargs)


async def confirm(text: str, default: bool = False) -> bool:
    return await asyncio.to_thread(click.confirm, text, default=default)


def run_async(coro):
    """Run a command coroutine, reporting console errors as click errors."""
    try:
        return asyncio.run(coro)
    except ConsoleError as e:
        raise click.ClickException(str(e)) from e
