"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond role lookups).
Dataclasses own domain shape; stores and routes do the work.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    """The two roles a user can hold. Values match the rows in the roles table."""

    USER = "USER"
    ADMIN = "ADMIN"


@dataclass
class User:
    """A registered account as stored in the users table.

    roles holds role names as strings (the store's representation). Unknown
    names are tolerated here and rejected when the record is projected into a
    Principal, so a bad row never turns into an authorized request.
    """

    username: str
    email: str
    id: int | None = None
    hashed_password: str | None = None
    roles: list[str] = field(default_factory=list)
    created_at: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class Principal:
    """The authenticated identity attached to one request.

    Built once per request by auth.principal.resolve_principal() and passed
    explicitly as the first argument to every task operation. Frozen so no
    handler can widen its own role set mid-request.
    """

    user_id: int
    username: str
    roles: frozenset[Role]

    def has_role(self, *roles: Role) -> bool:
        """Return True if the principal holds any of the given roles."""
        return any(r in self.roles for r in roles)

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles
