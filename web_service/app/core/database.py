"""
Database pool and repository dependencies
"""
from typing import Optional

from fastapi import HTTPException, status
import structlog

from console_core.data.database import Database, DatabaseConfig
from console_core.data.repository import Repository
from console_core.implementations.nango_connector import NangoConfig, NangoConnectorApi

from .config import get_settings

logger = structlog.get_logger(__name__)

_database: Optional[Database] = None
_connector_api: Optional[NangoConnectorApi] = None


async def init_db():
    """Open the connection pool and the connector client"""
    global _database, _connector_api

    _database = Database(DatabaseConfig())
    await _database.connect()
    logger.info("Database pool opened", database=_database.config.database)

    settings = get_settings()
    if settings.NANGO_SECRET_KEY:
        _connector_api = NangoConnectorApi(NangoConfig(
            base_url=settings.NANGO_HOST,
            secret_key=settings.NANGO_SECRET_KEY,
        ))
    else:
        logger.warning("NANGO_SECRET_KEY is not set, connector syncs will not be triggered")


async def close_db():
    global _database, _connector_api

    if _connector_api:
        await _connector_api.close()
        _connector_api = None
    if _database:
        await _database.disconnect()
        _database = None
        logger.info("Database pool closed")


def get_repository() -> Repository:
    if _database is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not available",
        )
    return Repository(_database)


def get_connector_api() -> Optional[NangoConnectorApi]:
    return _connector_api
