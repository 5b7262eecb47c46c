"""
Request and response models for the source console API
"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from console_core.data.models import FileRecord, SyncQueueEntry, Token, UsageSnapshot


class ErrorResponse(BaseModel):
    """Standard error response"""
    success: bool = Field(default=False, description="Always false for errors")
    error_code: str = Field(..., description="Error code")
    error_message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional error details")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")


class SyncQueueInfo(BaseModel):
    id: Optional[str] = None
    source_id: str
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @classmethod
    def from_entry(cls, entry: SyncQueueEntry) -> "SyncQueueInfo":
        return cls(
            id=entry.id,
            source_id=entry.source_id,
            status=entry.status,
            created_at=entry.created_at,
            ended_at=entry.ended_at,
        )


class SourceInfo(BaseModel):
    id: str
    project_id: str
    type: str
    data: Dict[str, Any] = {}
    inserted_at: Optional[datetime] = None
    label: str
    icon: str
    can_delete: bool
    can_configure: bool
    can_sync: bool
    latest_sync: Optional[SyncQueueInfo] = None


class SourcesResponse(BaseModel):
    sources: List[SourceInfo]
    is_syncing: bool = Field(..., description="Whether any source of the project is syncing")


class CreateSourceRequest(BaseModel):
    type: str = Field(..., description="Source type tag, e.g. nango or website")
    data: Dict[str, Any] = Field(default_factory=dict, description="Type specific payload")


class FileInfo(BaseModel):
    id: str
    source_id: str
    path: str
    title: str
    meta: Dict[str, Any] = {}
    updated_at: Optional[datetime] = None
    token_count: Optional[int] = None

    @classmethod
    def from_record(cls, file: FileRecord, title: str) -> "FileInfo":
        return cls(
            id=file.id,
            source_id=file.source_id,
            path=file.path,
            title=title,
            meta=file.meta or {},
            updated_at=file.updated_at,
            token_count=file.token_count,
        )


class FilesResponse(BaseModel):
    files: List[FileInfo]
    page: int
    page_size: int
    has_more_pages: bool
    total: int = Field(..., description="Number of files matching the source filter")


class DeleteFilesRequest(BaseModel):
    ids: List[str] = Field(..., description="Files to delete")


class DeleteFilesResponse(BaseModel):
    deleted: int


class UsageInfo(BaseModel):
    num_tokens_used: int
    num_tokens_allowance: int
    can_add_more_content: bool

    @classmethod
    def from_snapshot(cls, usage: UsageSnapshot) -> "UsageInfo":
        return cls(
            num_tokens_used=usage.num_tokens_used,
            num_tokens_allowance=usage.num_tokens_allowance,
            can_add_more_content=usage.can_add_more_content,
        )


class TokenInfo(BaseModel):
    id: int
    project_id: str
    value: str
    created_by: Optional[str] = None
    inserted_at: Optional[datetime] = None

    @classmethod
    def from_token(cls, token: Token) -> "TokenInfo":
        return cls(
            id=token.id,
            project_id=token.project_id,
            value=token.value,
            created_by=token.created_by,
            inserted_at=token.inserted_at,
        )


class DeleteTokenRequest(BaseModel):
    id: int


def error_detail(error_code: str, message: str, **details) -> Dict[str, Any]:
    return ErrorResponse(
        error_code=error_code,
        error_message=message,
        details=details or None,
    ).model_dump(mode="json")
