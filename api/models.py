"""
API request and response models for the task manager REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in tasks/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.

Field-length and required-field rules live here, so the access layer only
ever sees well-formed payloads.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Principal, Role, User
from tasks.models import TaskDraft, TaskPatch, TaskPriority, TaskStatus, TaskView

# Pragmatic shape check only; deliverability is not our concern.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskRequest(BaseModel):
    """Request body for POST /tasks and PUT /tasks/{id}.

    Unknown fields (e.g. an owner id) are ignored: the owner of a new task is
    always the caller.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None

    def _due_date_iso(self) -> Optional[str]:
        return self.due_date.isoformat() if self.due_date is not None else None

    def to_draft(self) -> TaskDraft:
        return TaskDraft(
            title=self.title,
            description=self.description,
            status=self.status,
            priority=self.priority,
            due_date=self._due_date_iso(),
        )

    def to_patch(self) -> TaskPatch:
        return TaskPatch(
            title=self.title,
            description=self.description,
            status=self.status,
            priority=self.priority,
            due_date=self._due_date_iso(),
        )


class TaskResponse(BaseModel):
    """One task as seen by API clients. The owner appears by username only."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: Optional[str]
    status: TaskStatus
    priority: TaskPriority
    owner_username: Optional[str]
    due_date: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_view(cls, view: TaskView) -> "TaskResponse":
        return cls(
            id=view.id,
            title=view.title,
            description=view.description,
            status=view.status,
            priority=view.priority,
            owner_username=view.owner_username,
            due_date=view.due_date,
            created_at=view.created_at,
            updated_at=view.updated_at,
        )


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=72)


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    roles holds role names; unknown names are rejected by the route with 400
    rather than by enum validation, so the error names the offending role.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=72)
    roles: list[str] = Field(default_factory=lambda: [Role.USER.value], min_length=1, max_length=2)


class LoginResponse(BaseModel):
    """Returned by both login and register."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    username: str
    email: str
    roles: list[str]


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me -- the resolved principal."""

    user_id: int
    username: str
    roles: list[str]

    @classmethod
    def from_principal(cls, principal: Principal) -> "MeResponse":
        return cls(
            user_id=principal.user_id,
            username=principal.username,
            roles=sorted(r.value for r in principal.roles),
        )


class UserStatusRequest(BaseModel):
    """Request body for PATCH /api/v1/auth/users/{id}."""

    is_active: bool


class UserResponse(BaseModel):
    """One user row for the admin user listing. Never includes the password hash."""

    id: int
    username: str
    email: str
    roles: list[str]
    is_active: bool
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            roles=user.roles,
            is_active=user.is_active,
            created_at=user.created_at or "",
        )
