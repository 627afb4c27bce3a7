"""
auth/tokens.py -- Password hashing and the bearer tokens the task API accepts.

A token is an HS256 JWT signed with SECRET_KEY carrying the username (sub),
the numeric user_id, the sorted role names and an expiry. The roles claim is
informational: get_principal() reloads the user on every request, so a role
or is_active change takes effect without waiting for tokens to expire.

Login goes through authenticate_user(), which runs one bcrypt check per call
whether or not the username exists.

Layer rule: no imports from api/ or tasks/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("taskmanager.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """bcrypt-hash a password. LoginRequest/RegisterRequest cap input at 72 characters."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # unparseable stored hash
        return False


# Checked against when the username is unknown.
_DUMMY_HASH: str = hash_password("taskmanager_timing_dummy")


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def create_access_token(user_id: int, username: str, roles: list[str], expire_seconds: int = 0) -> str:
    """Sign a token for user_id. expire_seconds=0 means TOKEN_EXPIRE_SECONDS."""
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = {
        "sub": username,
        "user_id": user_id,
        "roles": sorted(roles),
        "exp": expire,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Return the verified claims, or None for a bad, expired or incomplete token."""
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "user_id" not in payload or "roles" not in payload:
        return None
    return payload


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Return the active User matching username and password, else None.

    An unknown username is still checked against _DUMMY_HASH so it costs the
    same as a wrong password.
    """
    user = store.get_by_username(username)
    if user is None or user.hashed_password is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        logger.info("Failed login for user=%s", username)
        return None
    if not user.is_active:
        return None
    return user
