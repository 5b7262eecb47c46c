"""
File index endpoints: paginated listing, bulk delete and usage
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi import status as http_status
import structlog

from console_core.core.file_browser import COLUMN_NAME, COLUMN_UPDATED, default_sort_direction
from console_core.core.source_registry import get_file_title, undeletable_file_ids
from console_core.data.models import FileSort, FilesQuery, SortDirection
from console_core.data.repository import Repository

from ..core.auth import User, require_user
from ..core.config import get_settings
from ..core.database import get_repository
from .models import DeleteFilesRequest, DeleteFilesResponse, FileInfo, FilesResponse, UsageInfo, error_detail

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/projects/{project_id}", tags=["Files"])


@router.get("/files", response_model=FilesResponse)
async def list_files(
    project_id: str,
    page: int = Query(0, ge=0, description="Zero-based page index"),
    page_size: Optional[int] = Query(None, ge=1, le=1000, description="Files per page"),
    sort: Optional[str] = Query(None, pattern=f"^({COLUMN_NAME}|{COLUMN_UPDATED})$", description="Column to sort by"),
    order: Optional[SortDirection] = Query(None, description="Sort direction"),
    source_id: List[str] = Query(default=[], description="Only return files of these sources"),
    repository: Repository = Depends(get_repository),
    current_user: User = Depends(require_user),
):
    """One page of the file index, newest first unless a sort is given."""
    page_size = page_size or get_settings().DEFAULT_PAGE_SIZE
    file_sort = FileSort(sort, order or default_sort_direction(sort)) if sort else None
    query = FilesQuery(page=page, page_size=page_size, sort=file_sort, source_ids=source_id)

    result = await repository.fetch_files(project_id, query)
    total = await repository.count_files(project_id, source_id or None)
    sources = await repository.list_sources(project_id)

    return FilesResponse(
        files=[FileInfo.from_record(f, get_file_title(f, sources)) for f in result.files],
        page=page,
        page_size=page_size,
        has_more_pages=result.has_more_pages,
        total=total,
    )


@router.delete("/files", response_model=DeleteFilesResponse)
async def delete_files(
    project_id: str,
    request: DeleteFilesRequest,
    repository: Repository = Depends(get_repository),
    current_user: User = Depends(require_user),
):
    """Bulk delete files. Only files of upload sources can be deleted."""
    if not request.ids:
        return DeleteFilesResponse(deleted=0)

    sources = await repository.list_sources(project_id)
    files = await repository.get_files(project_id, request.ids)
    blocked = undeletable_file_ids(files, sources)
    if blocked:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail=error_detail("FILES_NOT_DELETABLE", "Some files cannot be deleted", file_ids=blocked),
        )

    deleted = await repository.delete_files(project_id, request.ids)
    logger.info("Files deleted", project_id=project_id, count=deleted, user_id=current_user.user_id)
    return DeleteFilesResponse(deleted=deleted)


@router.get("/usage", response_model=UsageInfo)
async def get_usage(
    project_id: str,
    repository: Repository = Depends(get_repository),
    current_user: User = Depends(require_user),
):
    usage = await repository.get_usage(project_id, get_settings().TOKEN_ALLOWANCE)
    return UsageInfo.from_snapshot(usage)
