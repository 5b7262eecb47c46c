"""
API token endpoints
"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
import structlog

from console_core.data.repository import Repository

from ..core.auth import User, require_user
from ..core.database import get_repository
from .models import DeleteTokenRequest, TokenInfo, error_detail

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/projects/{project_id}/tokens", tags=["Tokens"])


@router.get("", response_model=List[TokenInfo])
async def list_tokens(
    project_id: str,
    repository: Repository = Depends(get_repository),
    current_user: User = Depends(require_user),
):
    tokens = await repository.list_tokens(project_id)
    return [TokenInfo.from_token(t) for t in tokens]


@router.post("", response_model=TokenInfo, status_code=http_status.HTTP_201_CREATED)
async def create_token(
    project_id: str,
    repository: Repository = Depends(get_repository),
    current_user: User = Depends(require_user),
):
    """Generate a new API token for the project."""
    token = await repository.create_token(project_id, created_by=current_user.user_id)
    logger.info("API token created", project_id=project_id, token_id=token.id, user_id=current_user.user_id)
    return TokenInfo.from_token(token)


@router.delete("", status_code=http_status.HTTP_204_NO_CONTENT)
async def delete_token(
    project_id: str,
    request: DeleteTokenRequest,
    repository: Repository = Depends(get_repository),
    current_user: User = Depends(require_user),
):
    if not await repository.delete_token(project_id, request.id):
        raise HTTPException(
            status_code=http_status.HTTP_404_NOT_FOUND,
            detail=error_detail("TOKEN_NOT_FOUND", f"Token {request.id} not found"),
        )
    logger.info("API token deleted", project_id=project_id, token_id=request.id, user_id=current_user.user_id)
