"""
tasks/policy.py -- The single authorization decision point for task operations.

is_permitted() is evaluated by tasks/access.py before any task is returned
and before any store mutation. Route handlers never make role or ownership
decisions of their own.

Rules:
  CREATE, LIST  -- any principal holding USER or ADMIN
  READ          -- ADMIN, or the task's owner
  UPDATE, DELETE -- ADMIN only; owning the task does not help
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from auth.models import Principal, Role
from tasks.models import Task


class Operation(str, Enum):
    CREATE = "create"
    LIST = "list"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


_ADMIN_ONLY = {Operation.UPDATE, Operation.DELETE}


def is_permitted(principal: Principal, operation: Operation, task: Optional[Task] = None) -> bool:
    """Return True if principal may perform operation (on task, where one applies).

    READ, UPDATE and DELETE need the target task. Passing None for them is a
    programming error and raises ValueError rather than quietly allowing or
    denying.
    """
    if not principal.has_role(Role.USER, Role.ADMIN):
        return False
    if operation in (Operation.CREATE, Operation.LIST):
        return True
    if task is None:
        raise ValueError(f"Operation {operation.value!r} requires a target task")
    if operation in _ADMIN_ONLY:
        return principal.is_admin
    return principal.is_admin or task.owner_user_id == principal.user_id
