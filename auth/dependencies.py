"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The request carries an Authorization: Bearer <token> header. The token is
verified in auth/tokens.py, the user it names is loaded from the UserStore,
and auth/principal.py turns that record into an immutable Principal.

get_principal() raises HTTP 401 if any step fails.
require_admin() wraps get_principal() and raises HTTP 403 if the principal
is not an ADMIN.

Task routes only use get_principal(): role and ownership rules for tasks live
in tasks/policy.py, not in route guards.

Layer rule: no imports from tasks/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Principal, User
from auth.principal import resolve_principal
from auth.tokens import decode_access_token
from core.exceptions import Unauthenticated


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def _user_from_request(request: Request) -> User | None:
    token = _bearer_token(request)
    if not token:
        return None
    payload = decode_access_token(token)
    if not payload:
        return None
    return request.app.state.user_store.get_by_id(payload["user_id"])


def get_principal(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(get_principal)): ...
    """
    try:
        return resolve_principal(_user_from_request(request))
    except Unauthenticated as exc:
        raise HTTPException(
            status_code=401,
            detail={"code": exc.code, "message": exc.message},
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def require_admin(request: Request) -> Principal:
    """Require the ADMIN role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    principal = get_principal(request)
    if not principal.is_admin:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return principal
