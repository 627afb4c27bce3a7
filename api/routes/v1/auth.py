"""
api/routes/v1/auth.py -- Authentication and user listing REST endpoints.

Routes:
  POST /api/v1/auth/register  -- create an account; returns a bearer token (201)
  POST /api/v1/auth/login     -- password login; returns a bearer token
  GET  /api/v1/auth/me        -- the resolved principal (requires auth)
  GET  /api/v1/auth/users     -- list all users (admin only)
  PATCH /api/v1/auth/users/{id} -- activate or deactivate an account (admin only)

Security:
  POST /login and /register are rate-limited per client IP.
  authenticate_user() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on every response that carries a token.
  Self-registration cannot grant ADMIN unless ALLOW_ADMIN_SELF_REGISTRATION
  is set.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, MeResponse, RegisterRequest, UserResponse, UserStatusRequest
from auth.dependencies import get_principal, require_admin
from auth.models import Principal, Role, User
from auth.store import UserStore
from auth.tokens import authenticate_user, create_access_token, hash_password
from core.config import get_settings

logger = logging.getLogger("taskmanager.api.auth")

_settings = get_settings()

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public
# - GET  /api/v1/auth/me:       requires auth (get_principal)
# - GET  /api/v1/auth/users:    requires admin (require_admin)
# - PATCH /api/v1/auth/users/{id}: requires admin (require_admin)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.register_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=LoginResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and return a token for it.

    Username and email must both be unused (409 otherwise). Every requested
    role must exist (400 invalid_role). ADMIN is only self-assignable when the
    deployment allows it (400 role_not_assignable).
    """
    user_store: UserStore = request.app.state.user_store

    known = {r.value for r in Role}
    roles = sorted(set(body.roles))
    unknown = [r for r in roles if r not in known]
    if unknown:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_role", "message": f"Role not found: {unknown[0]}"},
        )
    if Role.ADMIN.value in roles and not _settings.allow_admin_self_registration:
        raise HTTPException(
            status_code=400,
            detail={"code": "role_not_assignable", "message": "The ADMIN role cannot be self-assigned."},
        )
    if user_store.exists_by_username(body.username):
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "That username is already taken."},
        )
    if user_store.exists_by_email(body.email):
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "That email address is already registered."},
        )

    new_user = User(
        username=body.username,
        email=body.email,
        hashed_password=hash_password(body.password),
        roles=roles,
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        # A concurrent registration won the race between the checks above and the insert.
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "That username or email is already registered."},
        ) from exc

    logger.info("User registered: %s (roles %s)", body.username, ",".join(roles))
    return _token_response(201, user_id, body.username, body.email, roles)


@limiter.limit(_settings.login_rate_limit)  # brute-force mitigation
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return a bearer token.

    Returns the same generic error for wrong username and wrong password
    ("bad_credentials") to avoid leaking username existence information.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.username, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid username or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp
    return _token_response(200, user.id, user.username, user.email, user.roles)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(principal: Principal = Depends(get_principal)) -> MeResponse:
    """Return identity and roles for the current principal."""
    return MeResponse.from_principal(principal)


@router.get("/auth/users", response_model=list[UserResponse])
def list_users(request: Request, principal: Principal = Depends(require_admin)) -> list[UserResponse]:
    """List all user accounts. Admin only."""
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]


@router.patch("/auth/users/{user_id}", response_model=UserResponse)
def update_user_status(
    request: Request,
    user_id: int,
    body: UserStatusRequest,
    principal: Principal = Depends(require_admin),
) -> UserResponse:
    """Activate or deactivate an account. Admin only.

    A deactivated account's tokens stop resolving on the next request.
    Admins cannot deactivate themselves, so at least one active admin
    always remains.
    """
    user_store: UserStore = request.app.state.user_store

    target = user_store.get_by_id(user_id)
    if target is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    if not body.is_active and target.id == principal.user_id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deactivation", "message": "You cannot deactivate your own account."},
        )

    user_store.set_active(user_id, body.is_active)
    logger.info(
        "User %s %s by %s",
        target.username,
        "activated" if body.is_active else "deactivated",
        principal.username,
    )
    return UserResponse.from_user(user_store.get_by_id(user_id))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _token_response(status_code: int, user_id: int, username: str, email: str, roles: list[str]) -> JSONResponse:
    token = create_access_token(user_id, username, roles)
    resp = JSONResponse(
        status_code=status_code,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=_settings.token_expire_seconds,
            username=username,
            email=email,
            roles=sorted(roles),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp
