"""Test query building and the repository against a mocked database"""

from unittest.mock import AsyncMock, MagicMock

import psycopg
import pytest

from console_core.core.errors import SourceNotFoundError, SyncAlreadyRunningError, SyncNotRunningError
from console_core.data.models import FileSort, FilesQuery, SortDirection
from console_core.data.repository import Repository, build_files_query, generate_key


def file_row(i: int):
    return {
        "id": f"f{i}",
        "source_id": "s1",
        "path": f"/docs/{i}.md",
        "meta": {"title": f"Doc {i}"},
        "updated_at": None,
        "token_count": 10,
    }


def queue_row(status: str):
    return {"id": "q1", "source_id": "s1", "status": status, "created_at": None, "ended_at": None}


@pytest.fixture
def db():
    database = MagicMock()
    database.fetch = AsyncMock(return_value=[])
    database.fetchrow = AsyncMock(return_value=None)
    database.fetchval = AsyncMock(return_value=0)
    database.execute = AsyncMock(return_value=0)
    return database


@pytest.fixture
def repository(db):
    return Repository(db)


class TestBuildFilesQuery:

    def test_default_order_and_paging(self):
        sql, params = build_files_query("p1", FilesQuery(page=2, page_size=20))
        assert "ORDER BY f.updated_at DESC, f.id" in sql
        assert "ANY" not in sql
        assert params == ["p1", 21, 40]

    def test_sort_by_name(self):
        query = FilesQuery(sort=FileSort("name", SortDirection.ASC))
        sql, _ = build_files_query("p1", query)
        assert "ORDER BY COALESCE(NULLIF(TRIM(f.meta->>'title'), ''), f.path) ASC, f.id" in sql

    def test_source_filter(self):
        sql, params = build_files_query("p1", FilesQuery(source_ids=["a", "b"]))
        assert "f.source_id = ANY(%s::uuid[])" in sql
        assert params[1] == ["a", "b"]

    def test_unknown_column(self):
        with pytest.raises(ValueError):
            build_files_query("p1", FilesQuery(sort=FileSort("path; DROP TABLE file", SortDirection.ASC)))


class TestFiles:

    @pytest.mark.asyncio
    async def test_fetch_files_detects_more_pages(self, repository, db):
        db.fetch.return_value = [file_row(i) for i in range(3)]
        page = await repository.fetch_files("p1", FilesQuery(page_size=2))
        assert [f.id for f in page.files] == ["f0", "f1"]
        assert page.has_more_pages is True

    @pytest.mark.asyncio
    async def test_fetch_files_last_page(self, repository, db):
        db.fetch.return_value = [file_row(0)]
        page = await repository.fetch_files("p1", FilesQuery(page_size=2))
        assert page.has_more_pages is False
        assert page.files[0].meta == {"title": "Doc 0"}

    @pytest.mark.asyncio
    async def test_delete_no_ids_is_noop(self, repository, db):
        assert await repository.delete_files("p1", []) == 0
        db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_files_scoped_to_project(self, repository, db):
        db.execute.return_value = 2
        assert await repository.delete_files("p1", ["f1", "f2"]) == 2
        sql, project_id, ids = db.execute.call_args.args
        assert "s.project_id = %s" in sql
        assert project_id == "p1"
        assert ids == ["f1", "f2"]

    @pytest.mark.asyncio
    async def test_usage(self, repository, db):
        db.fetchval.return_value = 1500
        usage = await repository.get_usage("p1", 1000)
        assert usage.num_tokens_used == 1500
        assert usage.can_add_more_content is False


class TestSyncQueue:

    @pytest.mark.asyncio
    async def test_enqueue_rejects_running(self, repository, db):
        db.fetchrow.return_value = queue_row("running")
        with pytest.raises(SyncAlreadyRunningError):
            await repository.enqueue_sync("s1")

    @pytest.mark.asyncio
    async def test_enqueue(self, repository, db):
        db.fetchrow.side_effect = [queue_row("complete"), queue_row("running")]
        entry = await repository.enqueue_sync("s1")
        assert entry.is_running is True

    @pytest.mark.asyncio
    async def test_enqueue_race_maps_unique_violation(self, repository, db):
        db.fetchrow.side_effect = [None, psycopg.errors.UniqueViolation("duplicate")]
        with pytest.raises(SyncAlreadyRunningError):
            await repository.enqueue_sync("s1")

    @pytest.mark.asyncio
    async def test_enqueue_missing_source(self, repository, db):
        db.fetchrow.side_effect = [None, psycopg.errors.ForeignKeyViolation("missing")]
        with pytest.raises(SourceNotFoundError):
            await repository.enqueue_sync("s1")

    @pytest.mark.asyncio
    async def test_cancel_requires_running(self, repository, db):
        with pytest.raises(SyncNotRunningError):
            await repository.cancel_sync("s1")


class TestSourcesAndTokens:

    @pytest.mark.asyncio
    async def test_update_missing_source(self, repository):
        with pytest.raises(SourceNotFoundError):
            await repository.update_source_data("s1", {})

    @pytest.mark.asyncio
    async def test_create_source_decodes_json(self, repository, db):
        db.fetchrow.return_value = {
            "id": "s1", "project_id": "p1", "type": "website",
            "data": '{"url": "https://acme.com"}', "inserted_at": None,
        }
        source = await repository.create_source("p1", "website", {"url": "https://acme.com"})
        assert source.data == {"url": "https://acme.com"}

    def test_generate_key(self):
        key = generate_key()
        assert len(key) == 32
        assert key.isalnum()
        assert generate_key() != key
