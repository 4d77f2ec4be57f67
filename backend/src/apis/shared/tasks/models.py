"""Task data models for the task ingestion pipeline."""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, StrictBool, field_validator
from pydantic_core import PydanticCustomError

TASK_PK_PREFIX = "TASK#"

TITLE_MAX_LENGTH = 100
DETAIL_MAX_LENGTH = 1000


def task_pk(task_id: str) -> str:
    """Build the table partition key for a task id."""
    return f"{TASK_PK_PREFIX}{task_id}"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# UTC "Z" form only; seconds and fraction are optional
_UTC_DATETIME_PATTERN = re.compile(
    r"(\d{4}-\d{2}-\d{2})T(\d{2}:\d{2})(?::(\d{2})(?:\.\d+)?)?Z"
)


def is_iso8601_timestamp(value: str) -> bool:
    """
    Check that a string is an ISO-8601 UTC date-time such as
    ``2024-05-01T10:00:00Z`` or ``2024-05-01T10:00:00.123Z``.

    Offsets and local (naive) times are rejected.
    """
    match = _UTC_DATETIME_PATTERN.fullmatch(value)
    if match is None:
        return False

    date_part, time_part, seconds = match.groups()
    try:
        datetime.strptime(f"{date_part}T{time_part}:{seconds or '00'}", "%Y-%m-%dT%H:%M:%S")
    except ValueError:
        return False
    return True


@dataclass
class Task:
    """
    A task record.

    The table item additionally carries the partition key ``pk``
    (``TASK#<id>``), which never leaves the repository.
    """

    id: str
    title: str
    is_complete: bool = False
    detail: Optional[str] = None
    due_at: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict:
        """Convert to the external camelCase representation (optional fields omitted when unset)."""
        data = {
            "id": self.id,
            "title": self.title,
            "isComplete": self.is_complete,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.detail is not None:
            data["detail"] = self.detail
        if self.due_at is not None:
            data["dueAt"] = self.due_at
        return data

    def to_item(self) -> dict:
        """Convert to a DynamoDB item."""
        return {"pk": task_pk(self.id), **self.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        """Create from dictionary (DynamoDB item or external representation)."""
        return cls(
            id=data.get("id", ""),
            title=data.get("title", ""),
            is_complete=bool(data.get("isComplete", False)),
            detail=data.get("detail"),
            due_at=data.get("dueAt"),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


# =============================================================================
# Pydantic Models for Request Validation
# =============================================================================


class _TaskFields(BaseModel):
    """Field rules shared by create and update requests."""

    title: str = Field(..., description="Task title (1-100 characters)")
    detail: Optional[str] = Field(None, description="Optional task detail")
    due_at: Optional[str] = Field(None, alias="dueAt", description="Optional ISO-8601 due date")

    model_config = {"populate_by_name": True}

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        if len(v) < 1:
            raise PydanticCustomError("string_too_short", "Title is required")
        if len(v) > TITLE_MAX_LENGTH:
            raise PydanticCustomError(
                "string_too_long",
                f"Title must not exceed {TITLE_MAX_LENGTH} characters",
            )
        return v

    @field_validator("detail")
    @classmethod
    def check_detail(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > DETAIL_MAX_LENGTH:
            raise PydanticCustomError(
                "string_too_long",
                f"Detail must not exceed {DETAIL_MAX_LENGTH} characters",
            )
        return v

    @field_validator("due_at")
    @classmethod
    def check_due_at(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not is_iso8601_timestamp(v):
            raise PydanticCustomError(
                "datetime_format",
                "Due date must be a valid ISO8601 timestamp",
            )
        return v

    def to_message(self) -> dict:
        """Serialize with wire (camelCase) names, dropping unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CreateTaskRequest(_TaskFields):
    """Request body for creating a task; also the fan-out message body."""

    is_complete: StrictBool = Field(False, alias="isComplete")


class UpdateTaskRequest(_TaskFields):
    """
    Request body for updating a task.

    This is a full replace of the optional fields: a missing ``detail`` or
    ``dueAt`` removes the attribute from the stored record.
    """

    is_complete: StrictBool = Field(..., alias="isComplete")


# =============================================================================
# Pydantic Models for API Responses
# =============================================================================


class TaskResponse(BaseModel):
    """Response model for a task."""

    id: str
    title: str
    detail: Optional[str] = None
    due_at: Optional[str] = Field(None, alias="dueAt")
    is_complete: bool = Field(..., alias="isComplete")
    created_at: str = Field(..., alias="createdAt")
    updated_at: str = Field(..., alias="updatedAt")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        """Create response from Task dataclass."""
        return cls(
            id=task.id,
            title=task.title,
            detail=task.detail,
            due_at=task.due_at,
            is_complete=task.is_complete,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class TaskListResponse(BaseModel):
    """Response model for listing tasks."""

    tasks: List[TaskResponse]
    total: int


class UploadTasksResponse(BaseModel):
    """Response model for an accepted CSV upload."""

    message: str
    task_count: int = Field(..., alias="taskCount")
    message_ids: List[str] = Field(default_factory=list, alias="messageIds")

    model_config = {"populate_by_name": True}
