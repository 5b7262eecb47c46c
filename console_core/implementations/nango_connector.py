"""
Nango connector client.

Connections are authorized through a Nango connect session: the user
opens the connect link, signs in to the provider, and the client polls
the Nango API until the connection exists. The source row is created
first so its connection id can be handed to Nango, and is removed again
when authorization does not complete.
"""

import asyncio
import math
import os
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import structlog

from ..abstractions.connector import ConnectorClient
from ..core.errors import ConnectorCallbackError, ConnectorError
from ..data.models import Source, SourceType
from ..data.repository import Repository

logger = structlog.get_logger(__name__)


@dataclass
class NangoConfig:
    base_url: str = "https://api.nango.dev"
    secret_key: str = ""
    timeout: float = 30.0
    authorization_timeout: float = 300.0
    poll_interval: float = 2.0

    @classmethod
    def from_env(cls) -> "NangoConfig":
        return cls(
            base_url=os.getenv("NANGO_HOST", cls.base_url),
            secret_key=os.getenv("NANGO_SECRET_KEY", ""),
            timeout=float(os.getenv("NANGO_TIMEOUT", cls.timeout)),
            authorization_timeout=float(os.getenv("NANGO_AUTHORIZATION_TIMEOUT", cls.authorization_timeout)),
            poll_interval=float(os.getenv("NANGO_POLL_INTERVAL", cls.poll_interval)),
        )


class NangoConnectorApi:
    """Thin async wrapper over the Nango REST API."""

    def __init__(
        self,
        config: NangoConfig,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self._sleep = sleep
        self.client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
        )
        self.client.headers["Authorization"] = f"Bearer {config.secret_key}"

    async def close(self):
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Nango request failed", method=method, path=path, error=str(e))
            raise ConnectorError(f"Nango request failed: {e}") from e

        if response.status_code >= 400:
            error_type, message = self._parse_error(response)
            logger.warning(
                "Nango returned an error",
                method=method,
                path=path,
                status_code=response.status_code,
                error_type=error_type,
            )
            if error_type == "callback_err":
                raise ConnectorCallbackError(message)
            raise ConnectorError(message, type=error_type, status_code=response.status_code)

        return response

    @staticmethod
    def _parse_error(response: httpx.Response):
        try:
            body = response.json()
        except ValueError:
            return None, response.text or f"HTTP {response.status_code}"

        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return error.get("code"), error.get("message") or str(error)
        if isinstance(body, dict):
            return body.get("type"), body.get("message") or str(error or body)
        return None, str(body)

    async def create_connect_session(self, integration_id: str, connection_id: str, params: Dict[str, Any]) -> str:
        """Create a connect session and return the link the user must open."""
        response = await self._request("POST", "/connect/sessions", json={
            "end_user": {"id": connection_id},
            "allowed_integrations": [integration_id],
            "integrations_config_defaults": {
                integration_id: {"connection_config": params},
            },
        })
        return response.json()["data"]["connect_link"]

    async def get_connection(self, integration_id: str, connection_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = await self._request(
                "GET",
                f"/connection/{connection_id}",
                params={"provider_config_key": integration_id},
            )
        except ConnectorError as e:
            if e.status_code == 404:
                return None
            raise
        return response.json()

    async def wait_for_connection(self, integration_id: str, connection_id: str) -> Dict[str, Any]:
        """Poll until the user completed the authorization."""
        attempts = max(1, math.ceil(self.config.authorization_timeout / self.config.poll_interval))
        for _ in range(attempts):
            connection = await self.get_connection(integration_id, connection_id)
            if connection is not None:
                logger.info("Connection authorized", integration_id=integration_id, connection_id=connection_id)
                return connection
            await self._sleep(self.config.poll_interval)

        raise ConnectorCallbackError("Authorization was not completed in time")

    async def delete_connection(self, integration_id: str, connection_id: str):
        await self._request(
            "DELETE",
            f"/connection/{connection_id}",
            params={"provider_config_key": integration_id},
        )

    async def set_metadata(self, integration_id: str, connection_id: str, metadata: Dict[str, Any]):
        await self._request("POST", "/connection/metadata", json={
            "connection_id": connection_id,
            "provider_config_key": integration_id,
            "metadata": metadata,
        })

    async def trigger_sync(self, integration_id: str, connection_id: str, syncs: Optional[List[str]] = None):
        await self._request("POST", "/sync/trigger", json={
            "provider_config_key": integration_id,
            "connection_id": connection_id,
            "syncs": syncs or [],
        })
        logger.info("Triggered sync", integration_id=integration_id, connection_id=connection_id)


async def add_source_and_connection(
    repository: Repository,
    api: NangoConnectorApi,
    project_id: str,
    integration_id: str,
    name: str,
    params: Dict[str, Any],
    open_link: Callable[[str], Any],
) -> Source:
    """Create a connector-backed source and authorize its connection."""
    connection_id = str(uuid.uuid4())
    source = await repository.create_source(project_id, SourceType.NANGO.value, {
        "integration_id": integration_id,
        "connection_id": connection_id,
        "name": name,
        "connection_config": params,
    })

    try:
        link = await api.create_connect_session(integration_id, connection_id, params)
        result = open_link(link)
        if asyncio.iscoroutine(result):
            await result
        await api.wait_for_connection(integration_id, connection_id)
    except (Exception, asyncio.CancelledError):
        logger.info("Authorization failed, removing source", source_id=source.id)
        await repository.delete_source(source.id)
        raise

    return source


class NangoConnectorClient(ConnectorClient):
    def __init__(self, repository: Repository, api: NangoConnectorApi, open_link: Callable[[str], Any]):
        self.repository = repository
        self.api = api
        self.open_link = open_link

    async def create_connection(self, project_id: str, integration_id: str, name: str, params: Dict[str, Any]) -> Source:
        return await add_source_and_connection(
            self.repository,
            self.api,
            project_id,
            integration_id,
            name,
            params,
            self.open_link,
        )
