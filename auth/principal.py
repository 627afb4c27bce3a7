"""
auth/principal.py -- Projects an authenticated user record into a Principal.

This is the only place a role name string becomes a Role. Signature and
password checks have already happened by the time a record reaches here
(auth/tokens.py); this module trusts its input and only decides whether the
record is fit to act as a principal.

Layer rule: no imports from api/ or tasks/. Import from core/ is allowed.
"""

from __future__ import annotations

from auth.models import Principal, Role, User
from core.exceptions import Unauthenticated


def resolve_principal(user: User | None) -> Principal:
    """Return the Principal for an already-verified user record.

    Raises Unauthenticated when:
      - there is no record (token named a user that no longer exists),
      - the account is deactivated,
      - the record carries no roles, or a role name outside Role.
    """
    if user is None or user.id is None:
        raise Unauthenticated("Authentication required.")
    if not user.is_active:
        raise Unauthenticated("Account is disabled.")
    if not user.roles:
        raise Unauthenticated("Account has no roles.")
    try:
        roles = frozenset(Role(name) for name in user.roles)
    except ValueError as exc:
        raise Unauthenticated("Account has an unrecognised role.", detail=str(exc)) from exc
    return Principal(user_id=user.id, username=user.username, roles=roles)
