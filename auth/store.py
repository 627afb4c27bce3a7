"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as tasks/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and dependency code never touches SQL directly.

Schema:
  users       -- one row per account (username and email both UNIQUE)
  roles       -- one row per role name; USER and ADMIN are seeded on startup
  user_roles  -- many-to-many link between the two

Security:
  All queries use bound parameters. No f-strings in SQL.

Failures:
  Every query runs through _connect(). A DBAPIError is logged and re-raised
  as core.exceptions.StoreUnavailable, except IntegrityError, which create_user
  callers turn into a 409.

DB path: auth/taskmanager_auth.db by default; override with AUTH_DB_URL.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, IntegrityError

from auth.models import Role, User
from core.exceptions import StoreUnavailable

logger = logging.getLogger("taskmanager.auth.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'taskmanager_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text),
    Column("created_at", String(32), nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
)

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(30), nullable=False, unique=True),
)

_user_roles = Table(
    "user_roles",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("role_id", Integer, ForeignKey("roles.id"), nullable=False),
    UniqueConstraint("user_id", "role_id", name="uq_user_role"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _roles_by_user(conn: Connection, user_ids: list[int]) -> dict[int, list[str]]:
    """Return {user_id: [role names]} for the given users, names sorted."""
    if not user_ids:
        return {}
    rows = conn.execute(
        select(_user_roles.c.user_id, _roles.c.name)
        .join(_roles, _roles.c.id == _user_roles.c.role_id)
        .where(_user_roles.c.user_id.in_(user_ids))
        .order_by(_roles.c.name)
    ).fetchall()
    result: dict[int, list[str]] = {uid: [] for uid in user_ids}
    for row in rows:
        result[row.user_id].append(row.name)
    return result


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and their role links.

    Usage:
        store = UserStore()
        store.create_user(User(username="root", email="root@example.com", roles=["ADMIN"]))
        user = store.get_by_username("root")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)
        self._ensure_roles()

    @contextmanager
    def _connect(self, begin: bool = False) -> Iterator[Connection]:
        """Yield a connection, inside a transaction when begin is True.

        IntegrityError propagates unchanged so callers can report a duplicate
        username or email; any other DBAPIError becomes StoreUnavailable.
        """
        try:
            with self.engine.begin() if begin else self.engine.connect() as conn:
                yield conn
        except IntegrityError:
            raise
        except DBAPIError as exc:
            logger.error("User store call failed: %s", exc.__class__.__name__)
            raise StoreUnavailable("The user store is unavailable.") from exc

    def _ensure_roles(self) -> None:
        """Insert any Role missing from the roles table. Idempotent, runs on every startup."""
        with self._connect(begin=True) as conn:
            existing = {row.name for row in conn.execute(select(_roles.c.name))}
            for role in Role:
                if role.value not in existing:
                    conn.execute(_roles.insert().values(name=role.value))

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        """Return True if at least one user record exists."""
        with self._connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return (result or 0) > 0

    def create_user(self, user: User) -> int:
        """Insert a new user with its role links and return the assigned ID.

        The user row and its user_roles rows are written in one transaction.
        Raises sqlalchemy.exc.IntegrityError if the username or email already
        exists, and ValueError if a role name has no row in the roles table.
        Nothing is written in either case.
        """
        if not user.roles:
            raise ValueError("A user needs at least one role.")
        with self._connect(begin=True) as conn:
            role_ids = {
                row.name: row.id
                for row in conn.execute(select(_roles.c.id, _roles.c.name).where(_roles.c.name.in_(user.roles)))
            }
            unknown = set(user.roles) - set(role_ids)
            if unknown:
                raise ValueError(f"Unknown roles: {sorted(unknown)!r}")
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    created_at=_now_iso(),
                    is_active=1 if user.is_active else 0,
                )
            )
            user_id = result.inserted_primary_key[0]
            for name in sorted(set(user.roles)):
                conn.execute(_user_roles.insert().values(user_id=user_id, role_id=role_ids[name]))
        return user_id

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        return self._get_one(_users.c.username == username)

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        return self._get_one(_users.c.id == user_id)

    def _get_one(self, clause) -> User | None:
        with self._connect() as conn:
            row = conn.execute(_users.select().where(clause)).first()
            if row is None:
                return None
            roles = _roles_by_user(conn, [row.id])
        return _row_to_user(row, roles[row.id])

    def exists_by_username(self, username: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(select(_users.c.id).where(_users.c.username == username)).first()
        return row is not None

    def exists_by_email(self, email: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(select(_users.c.id).where(_users.c.email == email)).first()
        return row is not None

    def get_usernames(self, user_ids: Iterable[int]) -> dict[int, str]:
        """Return {user_id: username} for the given IDs in one query.

        IDs with no matching user are simply absent from the result. Used to
        render task owners by display name without one lookup per task.
        """
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        with self._connect() as conn:
            rows = conn.execute(select(_users.c.id, _users.c.username).where(_users.c.id.in_(ids))).fetchall()
        return {row.id: row.username for row in rows}

    def list_users(self) -> list[User]:
        """Return all users ordered by username. Admin-only operation."""
        with self._connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
            roles = _roles_by_user(conn, [r.id for r in rows])
        return [_row_to_user(r, roles[r.id]) for r in rows]

    def set_active(self, user_id: int, is_active: bool) -> bool:
        """Activate or deactivate an account. Returns False if user_id was not found."""
        with self._connect(begin=True) as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(is_active=1 if is_active else 0)
            )
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self._connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, roles: list[str]) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        roles=list(roles),
        created_at=row.created_at,
        is_active=bool(row.is_active),
    )
