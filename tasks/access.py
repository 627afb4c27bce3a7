"""
tasks/access.py -- Authorization-aware access layer for tasks.

TaskAccessController is the only way the API reaches the task store. Every
operation takes the request's Principal as its first argument, asks
tasks.policy.is_permitted() before returning or mutating anything, and runs
its store calls inside one transaction it owns.

Ordering on get/update/delete: existence is checked before authorization, so
a missing ID is NotFound for every caller (ADMIN included) and an existing
task the caller may not touch is Forbidden. This makes task existence
observable by ID to any authenticated user; kept as-is.

No optimistic locking: two concurrent admin updates of one task both succeed
and the last commit wins. update and delete do check that their write hit a
row, so a task removed by another request after the load is NotFound rather
than a second success. Owner names are resolved before the transaction
commits, so a user store failure rolls the write back.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, TypeVar

from auth.models import Principal
from auth.store import UserStore
from core.exceptions import Forbidden, InvalidInput, NotFound
from tasks.models import Task, TaskDraft, TaskPatch, TaskPriority, TaskStatus, TaskView
from tasks.policy import Operation, is_permitted
from tasks.store import TaskStore

logger = logging.getLogger("taskmanager.tasks")

_E = TypeVar("_E", bound=Enum)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _coerce(enum_cls: type[_E], value, field_name: str) -> Optional[_E]:
    """Return value as a member of enum_cls, None if value is None.

    Raises InvalidInput for any value that is not one of the enumerated names.
    """
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidInput(f"Invalid {field_name}: {value!r}.", detail=f"Allowed values: {allowed}") from exc


class TaskAccessController:
    """Create, list, read, update and delete tasks on behalf of a Principal.

    Args:
        store:  TaskStore holding the task rows.
        users:  UserStore used to render task owners by username.
        clock:  Returns the current time as an ISO 8601 UTC string. Injected
                so tests can control created_at/updated_at.
    """

    def __init__(self, store: TaskStore, users: UserStore, clock: Callable[[], str] = _now_iso) -> None:
        self._store = store
        self._users = users
        self._clock = clock

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_task(self, principal: Principal, draft: TaskDraft) -> TaskView:
        """Insert a task owned by the principal. Missing status/priority get their defaults."""
        self._authorize(principal, Operation.CREATE)
        status = _coerce(TaskStatus, draft.status, "status") or TaskStatus.PENDING
        priority = _coerce(TaskPriority, draft.priority, "priority") or TaskPriority.MEDIUM
        now = self._clock()
        task = Task(
            title=draft.title,
            description=draft.description,
            status=status,
            priority=priority,
            owner_user_id=principal.user_id,
            due_date=draft.due_date,
            created_at=now,
            updated_at=now,
        )
        with self._store.transaction() as conn:
            created = self._store.insert(task, conn=conn)
        logger.info("Task created id=%s by user=%s", created.id, principal.username)
        return _to_view(created, {principal.user_id: principal.username})

    def list_tasks(self, principal: Principal) -> list[TaskView]:
        """Return every task the principal may read, in insertion order.

        ADMIN: the whole store. USER: only the tasks they own.
        """
        self._authorize(principal, Operation.LIST)
        with self._store.transaction() as conn:
            if principal.is_admin:
                tasks = self._store.list_all(conn=conn)
            else:
                tasks = self._store.list_by_owner(principal.user_id, conn=conn)
            visible = [t for t in tasks if is_permitted(principal, Operation.READ, t)]
            return self._views(visible)

    def get_task(self, principal: Principal, task_id: int) -> TaskView:
        with self._store.transaction() as conn:
            task = self._load(task_id, conn)
            self._authorize(principal, Operation.READ, task)
            return self._views([task])[0]

    def update_task(self, principal: Principal, task_id: int, patch: TaskPatch) -> TaskView:
        """Apply patch to a task. ADMIN only, even for the task's owner.

        title and description are always replaced; status, priority and
        due_date only when the patch carries a value. updated_at is refreshed
        and never set earlier than created_at.
        """
        with self._store.transaction() as conn:
            task = self._load(task_id, conn, for_update=True)
            self._authorize(principal, Operation.UPDATE, task)
            status = _coerce(TaskStatus, patch.status, "status")
            priority = _coerce(TaskPriority, patch.priority, "priority")

            task.title = patch.title
            task.description = patch.description
            if status is not None:
                task.status = status
            if priority is not None:
                task.priority = priority
            if patch.due_date is not None:
                task.due_date = patch.due_date
            task.updated_at = max(self._clock(), task.created_at)

            if not self._store.update(task, conn=conn):
                raise NotFound(f"Task not found with ID: {task_id}")
            view = self._views([task])[0]
        logger.info("Task updated id=%s by user=%s", task.id, principal.username)
        return view

    def delete_task(self, principal: Principal, task_id: int) -> None:
        """Permanently remove a task. ADMIN only."""
        with self._store.transaction() as conn:
            task = self._load(task_id, conn, for_update=True)
            self._authorize(principal, Operation.DELETE, task)
            if not self._store.delete(task_id, conn=conn):
                raise NotFound(f"Task not found with ID: {task_id}")
        logger.info("Task deleted id=%s by user=%s", task_id, principal.username)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, task_id: int, conn, for_update: bool = False) -> Task:
        task = self._store.get(task_id, conn=conn, for_update=for_update)
        if task is None:
            raise NotFound(f"Task not found with ID: {task_id}")
        return task

    def _authorize(self, principal: Principal, operation: Operation, task: Optional[Task] = None) -> None:
        if is_permitted(principal, operation, task):
            return
        logger.warning(
            "Denied %s on task id=%s for user=%s",
            operation.value,
            task.id if task is not None else "-",
            principal.username,
        )
        if operation is Operation.UPDATE:
            raise Forbidden("Only administrators can update tasks.")
        if operation is Operation.DELETE:
            raise Forbidden("Only administrators can delete tasks.")
        if operation is Operation.READ:
            raise Forbidden("You do not have permission to access this task.")
        raise Forbidden("You do not have permission to manage tasks.")

    def _views(self, tasks: Iterable[Task]) -> list[TaskView]:
        tasks = list(tasks)
        usernames = self._users.get_usernames(t.owner_user_id for t in tasks)
        return [_to_view(t, usernames) for t in tasks]


def _to_view(task: Task, usernames: dict[int, str]) -> TaskView:
    return TaskView(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        owner_username=usernames.get(task.owner_user_id),
        due_date=task.due_date,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )
