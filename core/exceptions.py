"""
core/exceptions.py -- Domain error taxonomy for the task manager.

Every failure the access layer can report is one of these classes. Each
carries a stable machine-readable ``code``; api/main.py maps the class to an
HTTP status and wraps ``code``/``message`` in the shared error envelope.

The core never catches its own errors: each one is a terminal outcome for the
single operation that raised it.

Layer rule: core/ is the kernel. No imports from api/, auth/, or tasks/.
"""

from __future__ import annotations


class TaskManagerError(Exception):
    """Base class for all domain errors."""

    code = "error"

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class Unauthenticated(TaskManagerError):
    """No principal could be resolved for the request."""

    code = "unauthorized"


class Forbidden(TaskManagerError):
    """The principal lacks the role or ownership the operation requires."""

    code = "forbidden"


class NotFound(TaskManagerError):
    """The target record does not exist in the store."""

    code = "not_found"


class InvalidInput(TaskManagerError):
    """A payload value the core cannot accept (e.g. an unknown status name)."""

    code = "invalid_input"


class StoreUnavailable(TaskManagerError):
    """The underlying database call failed; the transaction was rolled back."""

    code = "store_unavailable"
