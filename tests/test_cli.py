"""Test the command line interface"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from click.testing import CliRunner

from console_core.cli import file_commands
from console_core.cli.file_commands import create_browser, handle_command
from console_core.core.file_browser import COLUMN_NAME, FileBrowser
from console_core.data.models import SortDirection, SourceType
from source_console.cli import cli
from conftest import (
    FakeFilesApi,
    FakeFilesProvider,
    FakeNotifier,
    FakeSourcesProvider,
    FakeUsageProvider,
    make_file,
    make_source,
)


@pytest.fixture
def runner():
    return CliRunner()


class TestCommandGroups:

    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for group in ("sources", "files", "tokens", "init-db"):
            assert group in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    @pytest.mark.parametrize("group,commands", [
        ("sources", ["list", "connect-salesforce", "sync", "stop-sync", "delete"]),
        ("files", ["list", "browse", "delete"]),
        ("tokens", ["list", "create", "delete"]),
    ])
    def test_group_help(self, runner, group, commands):
        result = runner.invoke(cli, [group, "--help"])
        assert result.exit_code == 0
        for command in commands:
            assert command in result.output

    def test_missing_project(self, runner, monkeypatch):
        monkeypatch.delenv("SOURCE_CONSOLE_PROJECT", raising=False)
        result = runner.invoke(cli, ["tokens", "list"])
        assert result.exit_code == 2
        assert "No project selected" in result.output

    def test_invalid_environment(self, runner):
        result = runner.invoke(cli, ["-p", "proj-1", "sources", "connect-salesforce", "--environment", "staging"])
        assert result.exit_code == 2

    def test_invalid_instance_url(self, runner):
        result = runner.invoke(cli, ["-p", "proj-1", "sources", "connect-salesforce", "--instance-url", "acme salesforce"])
        assert result.exit_code == 1
        assert "Please provide a valid instance URL." in result.output


@pytest.fixture
def browser(clock):
    sources = [
        make_source("s-up", SourceType.FILE_UPLOAD),
        make_source("s-ng", SourceType.NANGO, integration_id="salesforce-knowledge", name="Salesforce Knowledge"),
    ]
    files = [make_file("f1", "s-up", title="Getting started"), make_file("f2", "s-ng")]
    return FileBrowser(
        "proj-1",
        files=FakeFilesProvider(files),
        sources=FakeSourcesProvider(sources),
        usage=FakeUsageProvider(),
        files_api=FakeFilesApi(),
        notifier=FakeNotifier(),
        sleep=clock.sleep,
    )


class TestBrowseCommands:

    @pytest.mark.asyncio
    async def test_quit(self, browser):
        assert await handle_command(browser, "q") is False
        assert await handle_command(browser, "") is True

    @pytest.mark.asyncio
    async def test_sort_toggle(self, browser):
        await handle_command(browser, "s name")
        assert browser.files.get_sort_order(COLUMN_NAME) == SortDirection.ASC
        assert browser.sort_glyph(COLUMN_NAME) == "↑"

        await handle_command(browser, "s name")
        assert browser.files.get_sort_order(COLUMN_NAME) == SortDirection.DESC

    @pytest.mark.asyncio
    async def test_select_only_deletable_rows(self, browser):
        await handle_command(browser, "x 1")
        assert browser.selected_ids == ["f1"]

        await handle_command(browser, "x 2")
        assert browser.selected_ids == ["f1"]

    @pytest.mark.asyncio
    async def test_filter_and_clear(self, browser):
        await handle_command(browser, "f 2")
        assert browser.files.source_ids_filter == ["s-ng"]
        assert browser.active_filter_label() == "Salesforce Knowledge"

        await handle_command(browser, "c")
        assert browser.files.source_ids_filter == []

    @pytest.mark.asyncio
    async def test_sync_source(self, browser):
        await handle_command(browser, "y 2")
        assert [s.id for s in browser.sources.synced[0]] == ["s-ng"]
        assert browser.is_one_source_syncing is True
        await browser.close()

    @pytest.mark.asyncio
    async def test_unknown_command_prints_help(self, browser, capsys):
        assert await handle_command(browser, "?") is True
        assert "Commands:" in capsys.readouterr().out


@pytest.fixture
def repository(monkeypatch):
    repo = MagicMock()
    repo.list_sources = AsyncMock(return_value=[
        make_source("s-up", SourceType.FILE_UPLOAD),
        make_source("s-ng", SourceType.NANGO, integration_id="salesforce-knowledge"),
    ])
    repo.get_files = AsyncMock(side_effect=lambda project_id, ids: [
        f for f in [make_file("f1", "s-up"), make_file("f2", "s-ng")] if f.id in ids
    ])
    repo.delete_files = AsyncMock(side_effect=lambda project_id, ids: len(ids))

    @asynccontextmanager
    async def open_repository():
        yield repo

    monkeypatch.setattr(file_commands, "open_repository", open_repository)
    return repo


class TestFilesDelete:

    def test_deletes_uploaded_files(self, runner, repository):
        result = runner.invoke(cli, ["-p", "proj-1", "files", "delete", "--file-id", "f1", "--force"])
        assert result.exit_code == 0
        repository.delete_files.assert_awaited_once_with("proj-1", ["f1"])

    def test_refuses_connector_files(self, runner, repository):
        result = runner.invoke(
            cli, ["-p", "proj-1", "files", "delete", "--file-id", "f1", "--file-id", "f2", "--force"]
        )
        assert result.exit_code == 1
        assert "f2" in result.output
        repository.delete_files.assert_not_called()

    def test_browser_sources_use_connector(self, repository):
        api = MagicMock()
        browser = create_browser(repository, "proj-1", connector_api=api)
        assert browser.sources.connector_api is api
