"""
tasks/models.py -- Domain dataclasses for tasks.

Task is the stored row. TaskDraft and TaskPatch are the already-validated
inputs to create and update. TaskView is what leaves the access layer: the
owner is rendered by username, never by internal ID.

Timestamps are ISO 8601 UTC strings, the same representation the store
writes, so they compare correctly as strings.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass
class Task:
    """A task row.

    id is None before the record is written to the database.
    owner_user_id is fixed at creation; the store never updates it.
    """

    title: str
    owner_user_id: int
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by the access layer on create
    updated_at: str = ""  # ISO 8601, refreshed on every mutation
    id: Optional[int] = None


@dataclass
class TaskDraft:
    """Input to create. No owner field: the owner is always the calling principal."""

    title: str
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[str] = None


@dataclass
class TaskPatch:
    """Input to update.

    title and description always replace the stored values (None clears the
    description). status, priority and due_date replace the stored value only
    when not None.
    """

    title: str
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[str] = None


@dataclass(frozen=True)
class TaskView:
    """Externally visible projection of a Task."""

    id: int
    title: str
    description: Optional[str]
    status: TaskStatus
    priority: TaskPriority
    owner_username: Optional[str]
    due_date: Optional[str]
    created_at: str
    updated_at: str
