"""Unit tests for tasks/policy.py -- the single authorization decision point.

Covers:
- CREATE and LIST allowed for USER and ADMIN
- READ allowed for ADMIN and for the owner only
- UPDATE and DELETE allowed for ADMIN only, even when a USER owns the task
- principals holding no known role are denied everything
- READ/UPDATE/DELETE without a target task is a programming error
"""

import pytest

from auth.models import Principal, Role
from tasks.models import Task
from tasks.policy import Operation, is_permitted

ALICE = Principal(user_id=1, username="alice", roles=frozenset({Role.USER}))
BOB = Principal(user_id=2, username="bob", roles=frozenset({Role.USER}))
ROOT = Principal(user_id=3, username="root", roles=frozenset({Role.ADMIN}))
NOBODY = Principal(user_id=4, username="nobody", roles=frozenset())

ALICES_TASK = Task(id=10, title="Buy milk", owner_user_id=1)


@pytest.mark.parametrize("principal", [ALICE, BOB, ROOT])
@pytest.mark.parametrize("operation", [Operation.CREATE, Operation.LIST])
def test_create_and_list_open_to_both_roles(principal, operation):
    assert is_permitted(principal, operation) is True


def test_owner_can_read():
    assert is_permitted(ALICE, Operation.READ, ALICES_TASK) is True


def test_other_user_cannot_read():
    assert is_permitted(BOB, Operation.READ, ALICES_TASK) is False


def test_admin_can_read_any_task():
    assert is_permitted(ROOT, Operation.READ, ALICES_TASK) is True


@pytest.mark.parametrize("operation", [Operation.UPDATE, Operation.DELETE])
def test_owner_cannot_write(operation):
    assert is_permitted(ALICE, operation, ALICES_TASK) is False


@pytest.mark.parametrize("operation", [Operation.UPDATE, Operation.DELETE])
def test_admin_can_write_tasks_they_do_not_own(operation):
    assert is_permitted(ROOT, operation, ALICES_TASK) is True


def test_admin_that_is_also_user_keeps_admin_rights():
    both = Principal(user_id=2, username="bob", roles=frozenset({Role.USER, Role.ADMIN}))
    assert is_permitted(both, Operation.DELETE, ALICES_TASK) is True


@pytest.mark.parametrize("operation", list(Operation))
def test_principal_without_roles_is_denied(operation):
    assert is_permitted(NOBODY, operation, ALICES_TASK) is False


@pytest.mark.parametrize("operation", [Operation.READ, Operation.UPDATE, Operation.DELETE])
def test_targeted_operation_requires_task(operation):
    with pytest.raises(ValueError):
        is_permitted(ROOT, operation)
