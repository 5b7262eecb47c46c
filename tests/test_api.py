"""Test the web service routes with an in-memory repository"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from console_core.core.errors import SyncAlreadyRunningError, SyncNotRunningError
from console_core.data.models import FilesPage, FilesQuery, Source, SourceType, SyncQueueEntry, Token, UsageSnapshot
from web_service.app.core.auth import User, create_access_token
from web_service.app.core.database import get_connector_api, get_repository
from web_service.app.main import create_app
from conftest import make_file, make_source

PROJECT = "proj-1"
BASE = f"/api/v1/projects/{PROJECT}"


class InMemoryRepository:
    def __init__(self):
        self.sources = {}
        self.queues = {}
        self.files = []
        self.tokens: List[Token] = []

    async def list_sources(self, project_id):
        return [s for s in self.sources.values() if s.project_id == project_id]

    async def get_source(self, source_id):
        return self.sources.get(source_id)

    async def create_source(self, project_id, source_type, data):
        source = Source(id=f"s{len(self.sources) + 1}", project_id=project_id, type=source_type, data=data)
        self.sources[source.id] = source
        return source

    async def delete_source(self, source_id):
        self.files = [f for f in self.files if f.source_id != source_id]
        return self.sources.pop(source_id, None) is not None

    async def latest_sync_queues(self, project_id):
        return [q for q in self.queues.values() if self.sources[q.source_id].project_id == project_id]

    async def enqueue_sync(self, source_id):
        current = self.queues.get(source_id)
        if current and current.is_running:
            raise SyncAlreadyRunningError(source_id)
        self.queues[source_id] = SyncQueueEntry(id=f"q-{source_id}", source_id=source_id, status="running")
        return self.queues[source_id]

    async def cancel_sync(self, source_id):
        current = self.queues.get(source_id)
        if not current or not current.is_running:
            raise SyncNotRunningError(source_id)
        current.status = "canceled"
        return current

    def _project_files(self, project_id, source_ids: Optional[List[str]] = None):
        return [
            f for f in self.files
            if f.source_id in self.sources
            and self.sources[f.source_id].project_id == project_id
            and (not source_ids or f.source_id in source_ids)
        ]

    async def fetch_files(self, project_id, query: FilesQuery):
        files = sorted(self._project_files(project_id, query.source_ids), key=lambda f: f.updated_at, reverse=True)
        start = query.page * query.page_size
        window = files[start:start + query.page_size + 1]
        return FilesPage(files=window[:query.page_size], has_more_pages=len(window) > query.page_size)

    async def get_files(self, project_id, file_ids):
        return [f for f in self._project_files(project_id) if f.id in file_ids]

    async def count_files(self, project_id, source_ids=None):
        return len(self._project_files(project_id, source_ids))

    async def delete_files(self, project_id, file_ids):
        before = len(self.files)
        owned = {f.id for f in self._project_files(project_id)}
        self.files = [f for f in self.files if not (f.id in owned and f.id in file_ids)]
        return before - len(self.files)

    async def get_usage(self, project_id, allowance):
        used = sum(f.token_count or 0 for f in self._project_files(project_id))
        return UsageSnapshot(num_tokens_used=used, num_tokens_allowance=allowance)

    async def list_tokens(self, project_id):
        return [t for t in self.tokens if t.project_id == project_id]

    async def create_token(self, project_id, created_by=None):
        token = Token(id=len(self.tokens) + 1, project_id=project_id, value="x" * 32, created_by=created_by)
        self.tokens.append(token)
        return token

    async def delete_token(self, project_id, token_id):
        before = len(self.tokens)
        self.tokens = [t for t in self.tokens if not (t.id == token_id and t.project_id == project_id)]
        return len(self.tokens) < before


@pytest.fixture
def repository():
    repo = InMemoryRepository()
    for source in [make_source("s-up"), make_source("s-web", SourceType.WEBSITE, url="https://docs.acme.com")]:
        repo.sources[source.id] = source

    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for i in range(25):
        file = make_file(f"f{i:02d}", "s-up" if i % 5 else "s-web")
        file.updated_at = base + timedelta(hours=i)
        file.token_count = 10
        repo.files.append(file)
    return repo


@pytest.fixture
def client(repository):
    app = create_app()
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_connector_api] = lambda: None
    return TestClient(app)


@pytest.fixture
def auth_headers():
    token = create_access_token(User(user_id="user-1", email="dev@acme.com"))
    return {"Authorization": f"Bearer {token}"}


class TestHealthAndCors:

    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers

    def test_cors_exposed_headers(self, client):
        response = client.get("/api/v1/health", headers={"Origin": "https://app.acme.com"})
        exposed = response.headers["access-control-expose-headers"]
        assert "x-markprompt-data" in exposed
        assert "x-markprompt-debug-info" in exposed


class TestAuth:

    def test_tokens_require_user(self, client):
        assert client.get(f"{BASE}/tokens").status_code == 401
        assert client.post(f"{BASE}/tokens").status_code == 401

    def test_invalid_token(self, client):
        response = client.get(f"{BASE}/tokens", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401


class TestTokens:

    def test_create_list_delete(self, client, auth_headers):
        created = client.post(f"{BASE}/tokens", headers=auth_headers)
        assert created.status_code == 201
        assert created.json()["created_by"] == "user-1"

        listed = client.get(f"{BASE}/tokens", headers=auth_headers).json()
        assert [t["id"] for t in listed] == [created.json()["id"]]

        deleted = client.request("DELETE", f"{BASE}/tokens", json={"id": created.json()["id"]}, headers=auth_headers)
        assert deleted.status_code == 204
        assert client.get(f"{BASE}/tokens", headers=auth_headers).json() == []

    def test_delete_unknown(self, client, auth_headers):
        response = client.request("DELETE", f"{BASE}/tokens", json={"id": 99}, headers=auth_headers)
        assert response.status_code == 404


class TestFiles:

    def test_first_page(self, client, auth_headers):
        body = client.get(f"{BASE}/files", params={"page_size": 10}, headers=auth_headers).json()
        assert len(body["files"]) == 10
        assert body["files"][0]["id"] == "f24"
        assert body["has_more_pages"] is True
        assert body["total"] == 25

    def test_last_page(self, client, auth_headers):
        body = client.get(f"{BASE}/files", params={"page": 2, "page_size": 10}, headers=auth_headers).json()
        assert len(body["files"]) == 5
        assert body["has_more_pages"] is False

    def test_source_filter(self, client, auth_headers):
        body = client.get(f"{BASE}/files", params={"source_id": ["s-web"]}, headers=auth_headers).json()
        assert body["total"] == 5
        assert {f["source_id"] for f in body["files"]} == {"s-web"}

    def test_invalid_sort(self, client, auth_headers):
        response = client.get(f"{BASE}/files", params={"sort": "path"}, headers=auth_headers)
        assert response.status_code == 422

    def test_delete_upload_files(self, client, auth_headers, repository):
        response = client.request("DELETE", f"{BASE}/files", json={"ids": ["f01", "f02"]}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"deleted": 2}
        assert len(repository.files) == 23

    def test_delete_rejects_non_upload_files(self, client, auth_headers, repository):
        response = client.request("DELETE", f"{BASE}/files", json={"ids": ["f00", "f01"]}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"]["details"]["file_ids"] == ["f00"]
        assert len(repository.files) == 25

    def test_usage(self, client, auth_headers):
        body = client.get(f"{BASE}/usage", headers=auth_headers).json()
        assert body["num_tokens_used"] == 250
        assert body["can_add_more_content"] is True


class TestSources:

    def test_list(self, client, auth_headers):
        body = client.get(f"{BASE}/sources", headers=auth_headers).json()
        labels = {s["id"]: s["label"] for s in body["sources"]}
        assert labels == {"s-up": "File uploads", "s-web": "https://docs.acme.com"}
        assert body["is_syncing"] is False

    def test_create_and_delete(self, client, auth_headers, repository):
        created = client.post(
            f"{BASE}/sources",
            json={"type": "nango", "data": {"integration_id": "salesforce-knowledge", "connection_id": "c1"}},
            headers=auth_headers,
        )
        assert created.status_code == 201
        assert created.json()["label"] == "Salesforce Knowledge"
        assert created.json()["can_sync"] is True

        source_id = created.json()["id"]
        assert client.delete(f"{BASE}/sources/{source_id}", headers=auth_headers).status_code == 204
        assert source_id not in repository.sources

    def test_create_unknown_type(self, client, auth_headers):
        response = client.post(f"{BASE}/sources", json={"type": "fax"}, headers=auth_headers)
        assert response.status_code == 400

    def test_delete_missing(self, client, auth_headers):
        assert client.delete(f"{BASE}/sources/nope", headers=auth_headers).status_code == 404

    def test_sync_conflict_and_stop(self, client, auth_headers, repository):
        repository.sources["s-ng"] = Source(
            id="s-ng", project_id=PROJECT, type="nango",
            data={"integration_id": "salesforce-knowledge", "connection_id": "c1"},
        )

        started = client.post(f"{BASE}/sources/s-ng/sync", headers=auth_headers)
        assert started.status_code == 202
        assert started.json()["status"] == "running"

        assert client.get(f"{BASE}/sources", headers=auth_headers).json()["is_syncing"] is True
        assert client.post(f"{BASE}/sources/s-ng/sync", headers=auth_headers).status_code == 409

        stopped = client.post(f"{BASE}/sources/s-ng/sync/stop", headers=auth_headers)
        assert stopped.status_code == 200
        assert stopped.json()["status"] == "canceled"
        assert client.post(f"{BASE}/sources/s-ng/sync/stop", headers=auth_headers).status_code == 409

    def test_sync_not_syncable(self, client, auth_headers):
        assert client.post(f"{BASE}/sources/s-up/sync", headers=auth_headers).status_code == 400
