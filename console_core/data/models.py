from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum

class SourceType(Enum):
    NANGO = "nango"
    GITHUB = "github"
    MOTIF = "motif"
    WEBSITE = "website"
    FILE_UPLOAD = "file-upload"
    API_UPLOAD = "api-upload"

class SyncQueueStatus(Enum):
    RUNNING = "running"
    CANCELED = "canceled"
    ERRORED = "errored"
    COMPLETE = "complete"

class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"

class StepState(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"

@dataclass
class Source:
    id: Optional[str] = None
    project_id: str = ""
    type: str = SourceType.NANGO.value
    data: Dict[str, Any] = field(default_factory=dict)
    inserted_at: Optional[datetime] = None

@dataclass
class SyncQueueEntry:
    id: Optional[str] = None
    source_id: str = ""
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.status == SyncQueueStatus.RUNNING.value

@dataclass
class FileRecord:
    id: Optional[str] = None
    source_id: str = ""
    path: str = ""
    meta: Dict[str, Any] = field(default_factory=dict)
    updated_at: Optional[datetime] = None
    token_count: Optional[int] = None

@dataclass
class Token:
    id: Optional[int] = None
    project_id: str = ""
    value: str = ""
    inserted_at: Optional[datetime] = None
    created_by: Optional[str] = None

@dataclass
class UsageSnapshot:
    num_tokens_used: int = 0
    num_tokens_allowance: int = 0

    @property
    def can_add_more_content(self) -> bool:
        return self.num_tokens_used < self.num_tokens_allowance

@dataclass(frozen=True)
class FileSort:
    column: str
    direction: SortDirection

@dataclass
class FilesQuery:
    """Server-side query for one page of the file index."""
    page: int = 0
    page_size: int = 50
    sort: Optional[FileSort] = None
    source_ids: List[str] = field(default_factory=list)

@dataclass
class FilesPage:
    files: List[FileRecord] = field(default_factory=list)
    has_more_pages: bool = False

@dataclass
class WizardState:
    """Client-local onboarding state, reset whenever the wizard closes."""
    source: Optional[Source] = None
    did_complete_configuration: bool = False

@dataclass(frozen=True)
class StepStates:
    connect: StepState
    configure: StepState
    sync: StepState
