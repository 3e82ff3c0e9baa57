# schemas/task.py
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List, Literal
from uuid import UUID
from enum import Enum


class TaskStatus(str, Enum):
    active = "active"
    completed = "completed"
    expired = "expired"


MIN_DAYS = 1
MAX_DAYS = 3650
TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
MAX_IMPORT_BATCH = 500


def _strip_text(v):
    return v.strip() if isinstance(v, str) else v


class TaskBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH)
    total_days: int = Field(..., ge=MIN_DAYS, le=MAX_DAYS)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip(cls, v):
        return _strip_text(v)


class TaskCreate(TaskBase):
    pass


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH)
    total_days: Optional[int] = Field(None, ge=MIN_DAYS, le=MAX_DAYS)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip(cls, v):
        return _strip_text(v)


class TaskImportItem(TaskBase):
    """A task created offline by the client store, uploaded on login."""
    start_date: datetime
    status: TaskStatus = TaskStatus.active
    completed_date: Optional[datetime] = None


class TaskImport(BaseModel):
    tasks: List[TaskImportItem] = Field(..., max_length=MAX_IMPORT_BATCH)


class TaskBatch(BaseModel):
    action: Literal["complete", "delete"]
    task_ids: List[UUID] = Field(..., min_length=1)


class TaskResponse(BaseModel):
    task_id: UUID
    title: str
    description: Optional[str]
    total_days: int
    start_date: datetime
    end_date: datetime
    completed_date: Optional[datetime]
    status: TaskStatus
    device_id: str
    user_id: Optional[UUID]
    completion_rate: float
    created_at: datetime
    updated_at: datetime

    # computed at read time, never stored
    remaining_days: int = 0
    is_expired: bool = False
    progress_percentage: int = 0

    class Config:
        from_attributes = True  # pydantic v2


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class TaskEnvelope(BaseModel):
    success: bool = True
    data: TaskResponse
    message: Optional[str] = None


class TaskListEnvelope(BaseModel):
    success: bool = True
    data: List[TaskResponse]
    pagination: Optional[Pagination] = None
