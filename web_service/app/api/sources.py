"""
Source endpoints: list, create, delete, and start or stop syncs
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
import structlog

from console_core.core.errors import ConnectorError, SyncAlreadyRunningError, SyncNotRunningError
from console_core.core.polling import is_any_source_syncing
from console_core.core.source_registry import (
    can_configure_source,
    can_delete_source,
    can_sync_source,
    get_icon_for_source,
    get_label_for_source,
    registry,
)
from console_core.data.models import Source, SourceType
from console_core.data.repository import Repository
from console_core.implementations.nango_connector import NangoConnectorApi

from ..core.auth import User, require_user
from ..core.database import get_connector_api, get_repository
from .models import CreateSourceRequest, SourceInfo, SourcesResponse, SyncQueueInfo, error_detail

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/projects/{project_id}/sources", tags=["Sources"])


def source_info(source: Source, latest_sync=None) -> SourceInfo:
    return SourceInfo(
        id=source.id,
        project_id=source.project_id,
        type=source.type,
        data=source.data,
        inserted_at=source.inserted_at,
        label=get_label_for_source(source, False),
        icon=get_icon_for_source(source),
        can_delete=can_delete_source(source.type),
        can_configure=can_configure_source(source.type),
        can_sync=can_sync_source(source.type),
        latest_sync=SyncQueueInfo.from_entry(latest_sync) if latest_sync else None,
    )


async def get_project_source(repository: Repository, project_id: str, source_id: str) -> Source:
    source = await repository.get_source(source_id)
    if source is None or source.project_id != project_id:
        raise HTTPException(
            status_code=http_status.HTTP_404_NOT_FOUND,
            detail=error_detail("SOURCE_NOT_FOUND", f"Source {source_id} not found"),
        )
    return source


@router.get("", response_model=SourcesResponse)
async def list_sources(
    project_id: str,
    repository: Repository = Depends(get_repository),
    current_user: User = Depends(require_user),
):
    """List the sources of a project with their latest sync."""
    sources = await repository.list_sources(project_id)
    queues = await repository.latest_sync_queues(project_id)
    by_source = {q.source_id: q for q in queues}

    return SourcesResponse(
        sources=[source_info(s, by_source.get(s.id)) for s in sources],
        is_syncing=is_any_source_syncing(queues),
    )


@router.post("", response_model=SourceInfo, status_code=http_status.HTTP_201_CREATED)
async def create_source(
    project_id: str,
    request: CreateSourceRequest,
    repository: Repository = Depends(get_repository),
    current_user: User = Depends(require_user),
):
    """Create a source. Connector sources are normally created by the onboarding flow."""
    if request.type not in registry.capabilities:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail=error_detail("INVALID_SOURCE_TYPE", f"Unknown source type: {request.type}"),
        )

    source = await repository.create_source(project_id, request.type, request.data)
    logger.info("Source created", project_id=project_id, source_id=source.id, type=source.type, user_id=current_user.user_id)
    return source_info(source)


@router.delete("/{source_id}", status_code=http_status.HTTP_204_NO_CONTENT)
async def delete_source(
    project_id: str,
    source_id: str,
    repository: Repository = Depends(get_repository),
    current_user: User = Depends(require_user),
):
    """Delete a source and, by cascade, its files and sync history."""
    await get_project_source(repository, project_id, source_id)
    await repository.delete_source(source_id)
    logger.info("Source deleted", project_id=project_id, source_id=source_id, user_id=current_user.user_id)


@router.post("/{source_id}/sync", response_model=SyncQueueInfo, status_code=http_status.HTTP_202_ACCEPTED)
async def sync_source(
    project_id: str,
    source_id: str,
    repository: Repository = Depends(get_repository),
    connector_api: Optional[NangoConnectorApi] = Depends(get_connector_api),
    current_user: User = Depends(require_user),
):
    """Start a sync of the source."""
    source = await get_project_source(repository, project_id, source_id)
    if not can_sync_source(source.type):
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail=error_detail("SOURCE_NOT_SYNCABLE", "This source cannot be synced"),
        )

    try:
        entry = await repository.enqueue_sync(source_id)
    except SyncAlreadyRunningError as e:
        raise HTTPException(
            status_code=http_status.HTTP_409_CONFLICT,
            detail=error_detail("SYNC_ALREADY_RUNNING", str(e)),
        )

    if connector_api and source.type == SourceType.NANGO.value:
        try:
            await connector_api.trigger_sync(source.data["integration_id"], source.data["connection_id"])
        except ConnectorError as e:
            logger.error("Failed to trigger connector sync", source_id=source_id, error=str(e))
            await repository.cancel_sync(source_id)
            raise HTTPException(
                status_code=http_status.HTTP_502_BAD_GATEWAY,
                detail=error_detail("SYNC_TRIGGER_FAILED", "Error syncing source"),
            )

    logger.info("Sync started", project_id=project_id, source_id=source_id, user_id=current_user.user_id)
    return SyncQueueInfo.from_entry(entry)


@router.post("/{source_id}/sync/stop", response_model=SyncQueueInfo)
async def stop_sync(
    project_id: str,
    source_id: str,
    repository: Repository = Depends(get_repository),
    current_user: User = Depends(require_user),
):
    """Cancel the running sync of the source."""
    await get_project_source(repository, project_id, source_id)
    try:
        entry = await repository.cancel_sync(source_id)
    except SyncNotRunningError as e:
        raise HTTPException(
            status_code=http_status.HTTP_409_CONFLICT,
            detail=error_detail("SYNC_NOT_RUNNING", str(e)),
        )

    logger.info("Sync stopped", project_id=project_id, source_id=source_id, user_id=current_user.user_id)
    return SyncQueueInfo.from_entry(entry)
