import json
import logging
import secrets
import string
from typing import Any, Dict, List, Optional, Tuple

import psycopg

from .database import Database, JSONEncoder
from .models import (
    FileRecord,
    FilesPage,
    FilesQuery,
    SortDirection,
    Source,
    SyncQueueEntry,
    SyncQueueStatus,
    Token,
    UsageSnapshot,
)
from ..core.errors import SourceNotFoundError, SyncAlreadyRunningError, SyncNotRunningError

logger = logging.getLogger(__name__)

# Column ids of the file table that the server knows how to order by
SORTABLE_COLUMNS = {
    "name": "COALESCE(NULLIF(TRIM(f.meta->>'title'), ''), f.path)",
    "updated": "f.updated_at",
}

TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_key(length: int = 32) -> str:
    """Generate a random alphanumeric API token value."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def _load_json(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return dict(value)


def _str_id(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def build_files_query(project_id: str, query: FilesQuery) -> Tuple[str, List[Any]]:
    """
    Build the SQL for one page of files.

    One extra row is requested beyond the page size so the caller can tell
    whether a further page exists without a second count query.
    """
    params: List[Any] = [project_id]
    where = ["s.project_id = %s"]

    if query.source_ids:
        where.append("f.source_id = ANY(%s::uuid[])")
        params.append(list(query.source_ids))

    if query.sort is None:
        order_by = "f.updated_at DESC"
    else:
        if query.sort.column not in SORTABLE_COLUMNS:
            raise ValueError(f"Column '{query.sort.column}' is not sortable")
        direction = "ASC" if query.sort.direction == SortDirection.ASC else "DESC"
        order_by = f"{SORTABLE_COLUMNS[query.sort.column]} {direction}"

    sql = f"""
        SELECT f.id, f.source_id, f.path, f.meta, f.updated_at, f.token_count
        FROM file f
        JOIN source s ON s.id = f.source_id
        WHERE {' AND '.join(where)}
        ORDER BY {order_by}, f.id
        LIMIT %s OFFSET %s
    """
    params.append(query.page_size + 1)
    params.append(query.page * query.page_size)
    return sql, params


class Repository:
    def __init__(self, database: Database):
        self.db = database

    # =====================================================
    # Sources
    # =====================================================

    def _row_to_source(self, row) -> Source:
        return Source(
            id=_str_id(row['id']),
            project_id=row['project_id'],
            type=row['type'],
            data=_load_json(row['data']),
            inserted_at=row['inserted_at'],
        )

    async def list_sources(self, project_id: str) -> List[Source]:
        """List all sources of a project, oldest first."""
        query = """
            SELECT id, project_id, type, data, inserted_at
            FROM source
            WHERE project_id = %s
            ORDER BY inserted_at, id
        """
        rows = await self.db.fetch(query, project_id)
        return [self._row_to_source(row) for row in rows]

    async def get_source(self, source_id: str) -> Optional[Source]:
        """Get a source by ID."""
        query = """
            SELECT id, project_id, type, data, inserted_at
            FROM source
            WHERE id = %s
        """
        row = await self.db.fetchrow(query, source_id)
        if not row:
            return None
        return self._row_to_source(row)

    async def create_source(self, project_id: str, source_type: str, data: Dict[str, Any]) -> Source:
        """Create a new source."""
        query = """
            INSERT INTO source (project_id, type, data)
            VALUES (%s, %s, %s::jsonb)
            RETURNING id, project_id, type, data, inserted_at
        """
        row = await self.db.fetchrow(
            query,
            project_id,
            source_type,
            json.dumps(data, cls=JSONEncoder),
        )
        source = self._row_to_source(row)
        logger.info(f"Created {source_type} source {source.id} in project {project_id}")
        return source

    async def update_source_data(self, source_id: str, data: Dict[str, Any]) -> Source:
        """Replace the type-specific payload of a source."""
        query = """
            UPDATE source
            SET data = %s::jsonb
            WHERE id = %s
            RETURNING id, project_id, type, data, inserted_at
        """
        row = await self.db.fetchrow(query, json.dumps(data, cls=JSONEncoder), source_id)
        if not row:
            raise SourceNotFoundError(source_id)
        return self._row_to_source(row)

    async def delete_source(self, source_id: str) -> bool:
        """Delete a source together with its files and sync history."""
        deleted = await self.db.execute("DELETE FROM source WHERE id = %s", source_id)
        if deleted:
            logger.info(f"Deleted source {source_id}")
        return deleted > 0

    # =====================================================
    # Sync queue
    # =====================================================

    def _row_to_sync_queue(self, row) -> SyncQueueEntry:
        return SyncQueueEntry(
            id=_str_id(row['id']),
            source_id=_str_id(row['source_id']),
            status=row['status'],
            created_at=row['created_at'],
            ended_at=row['ended_at'],
        )

    async def latest_sync_queues(self, project_id: str) -> List[SyncQueueEntry]:
        """Latest sync queue entry of every source in the project."""
        query = """
            SELECT DISTINCT ON (q.source_id)
                   q.id, q.source_id, q.status, q.created_at, q.ended_at
            FROM sync_queue q
            JOIN source s ON s.id = q.source_id
            WHERE s.project_id = %s
            ORDER BY q.source_id, q.created_at DESC
        """
        rows = await self.db.fetch(query, project_id)
        return [self._row_to_sync_queue(row) for row in rows]

    async def get_latest_sync_queue(self, source_id: str) -> Optional[SyncQueueEntry]:
        query = """
            SELECT id, source_id, status, created_at, ended_at
            FROM sync_queue
            WHERE source_id = %s
            ORDER BY created_at DESC
            LIMIT 1
        """
        row = await self.db.fetchrow(query, source_id)
        if not row:
            return None
        return self._row_to_sync_queue(row)

    async def enqueue_sync(self, source_id: str) -> SyncQueueEntry:
        """Create a running sync queue entry; at most one may run per source."""
        latest = await self.get_latest_sync_queue(source_id)
        if latest and latest.is_running:
            raise SyncAlreadyRunningError(source_id)

        query = """
            INSERT INTO sync_queue (source_id, status)
            VALUES (%s, %s)
            RETURNING id, source_id, status, created_at, ended_at
        """
        try:
            row = await self.db.fetchrow(query, source_id, SyncQueueStatus.RUNNING.value)
        except psycopg.errors.UniqueViolation as e:
            raise SyncAlreadyRunningError(source_id) from e
        except psycopg.errors.ForeignKeyViolation as e:
            raise SourceNotFoundError(source_id) from e

        logger.info(f"Enqueued sync for source {source_id}")
        return self._row_to_sync_queue(row)

    async def cancel_sync(self, source_id: str) -> SyncQueueEntry:
        """Request cancellation of the running sync of a source."""
        query = """
            UPDATE sync_queue
            SET status = %s, ended_at = NOW()
            WHERE source_id = %s AND status = %s
            RETURNING id, source_id, status, created_at, ended_at
        """
        row = await self.db.fetchrow(
            query,
            SyncQueueStatus.CANCELED.value,
            source_id,
            SyncQueueStatus.RUNNING.value,
        )
        if not row:
            raise SyncNotRunningError(source_id)

        logger.info(f"Canceled sync for source {source_id}")
        return self._row_to_sync_queue(row)

    # =====================================================
    # Files
    # =====================================================

    def _row_to_file(self, row) -> FileRecord:
        return FileRecord(
            id=_str_id(row['id']),
            source_id=_str_id(row['source_id']),
            path=row['path'],
            meta=_load_json(row['meta']),
            updated_at=row['updated_at'],
            token_count=row['token_count'],
        )

    async def fetch_files(self, project_id: str, query: FilesQuery) -> FilesPage:
        """Fetch one sorted, filtered page of files."""
        sql, params = build_files_query(project_id, query)
        rows = await self.db.fetch(sql, *params)
        files = [self._row_to_file(row) for row in rows[:query.page_size]]
        return FilesPage(files=files, has_more_pages=len(rows) > query.page_size)

    async def get_files(self, project_id: str, file_ids: List[str]) -> List[FileRecord]:
        if not file_ids:
            return []

        query = """
            SELECT f.id, f.source_id, f.path, f.meta, f.updated_at, f.token_count
            FROM file f
            JOIN source s ON s.id = f.source_id
            WHERE s.project_id = %s
              AND f.id = ANY(%s::uuid[])
        """
        rows = await self.db.fetch(query, project_id, list(file_ids))
        return [self._row_to_file(row) for row in rows]

    async def count_files(self, project_id: str, source_ids: Optional[List[str]] = None) -> int:
        """Count files in the project, optionally restricted to some sources."""
        query = """
            SELECT COUNT(*)
            FROM file f
            JOIN source s ON s.id = f.source_id
            WHERE s.project_id = %s
        """
        params: List[Any] = [project_id]
        if source_ids:
            query += " AND f.source_id = ANY(%s::uuid[])"
            params.append(list(source_ids))
        return await self.db.fetchval(query, *params) or 0

    async def delete_files(self, project_id: str, file_ids: List[str]) -> int:
        """Delete files of the project by id. An empty id list is a no-op."""
        if not file_ids:
            return 0

        query = """
            DELETE FROM file f
            USING source s
            WHERE f.source_id = s.id
              AND s.project_id = %s
              AND f.id = ANY(%s::uuid[])
        """
        deleted = await self.db.execute(query, project_id, list(file_ids))
        logger.info(f"Deleted {deleted} files from project {project_id}")
        return deleted

    async def get_usage(self, project_id: str, allowance: int) -> UsageSnapshot:
        """Sum the indexed token counts of the project."""
        query = """
            SELECT COALESCE(SUM(f.token_count), 0)
            FROM file f
            JOIN source s ON s.id = f.source_id
            WHERE s.project_id = %s
        """
        used = await self.db.fetchval(query, project_id) or 0
        return UsageSnapshot(num_tokens_used=int(used), num_tokens_allowance=allowance)

    # =====================================================
    # API tokens
    # =====================================================

    def _row_to_token(self, row) -> Token:
        return Token(
            id=row['id'],
            project_id=row['project_id'],
            value=row['value'],
            inserted_at=row['inserted_at'],
            created_by=row['created_by'],
        )

    async def list_tokens(self, project_id: str) -> List[Token]:
        query = """
            SELECT id, project_id, value, created_by, inserted_at
            FROM token
            WHERE project_id = %s
            ORDER BY inserted_at
        """
        rows = await self.db.fetch(query, project_id)
        return [self._row_to_token(row) for row in rows]

    async def create_token(self, project_id: str, created_by: Optional[str] = None) -> Token:
        """Generate and store a new API token for the project."""
        query = """
            INSERT INTO token (project_id, value, created_by)
            VALUES (%s, %s, %s)
            RETURNING id, project_id, value, created_by, inserted_at
        """
        row = await self.db.fetchrow(query, project_id, generate_key(), created_by)
        logger.info(f"Created API token {row['id']} for project {project_id}")
        return self._row_to_token(row)

    async def delete_token(self, project_id: str, token_id: int) -> bool:
        deleted = await self.db.execute(
            "DELETE FROM token WHERE id = %s AND project_id = %s",
            token_id,
            project_id,
        )
        return deleted > 0
