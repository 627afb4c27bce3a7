"""
tasks/store.py -- SQLAlchemy-backed persistence layer for tasks.

Uses SQLAlchemy Core (not ORM) so the dataclasses in tasks/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. TaskStore is the repository; _row_to_task
is the mapper. The access layer never touches SQL directly.

Transactions:
  Every method accepts an optional ``conn``. Without one, the method runs in
  its own short transaction. The access layer opens one with transaction()
  and passes it to each call, so a read-check-write sequence commits or rolls
  back as a unit. get(..., for_update=True) adds SELECT ... FOR UPDATE on
  backends that support row locks. SQLite ignores it and the load takes no
  lock, so the row can disappear before the write: update() and delete()
  return False when no row was changed, and callers must check it.

Failures:
  Any DBAPIError raised inside transaction() rolls the transaction back and
  is re-raised as core.exceptions.StoreUnavailable. Other exceptions (e.g. a
  Forbidden raised by the caller mid-transaction) roll back and propagate
  unchanged.

Usage:
    store = TaskStore()                               # SQLite default
    store = TaskStore("postgresql://user:pw@host/db") # PostgreSQL
    task = store.insert(Task(title="Buy milk", owner_user_id=1, ...))
    with store.transaction() as conn:
        task = store.get(task.id, conn=conn, for_update=True)
        store.update(task, conn=conn)
    store.close()
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError

from core.exceptions import StoreUnavailable
from tasks.models import Task, TaskPriority, TaskStatus

logger = logging.getLogger("taskmanager.tasks.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'taskmanager_tasks.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

# sqlite_autoincrement: IDs of deleted tasks are never handed out again.
_tasks = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(200), nullable=False),
    Column("description", Text),
    Column("status", String(20), nullable=False, server_default=TaskStatus.PENDING.value),
    Column("priority", String(10), nullable=False, server_default=TaskPriority.MEDIUM.value),
    Column("owner_user_id", Integer, nullable=False, index=True),
    Column("due_date", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    sqlite_autoincrement=True,
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
# Repository
# ---------------------------------------------------------------------------


class TaskStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync handlers in a thread pool, so a pooled SQLite
            # connection may be used from a thread other than its creator.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection inside a transaction that commits on clean exit."""
        try:
            with self.engine.begin() as conn:
                yield conn
        except DBAPIError as exc:
            logger.error("Task store call failed: %s", exc.__class__.__name__)
            raise StoreUnavailable("The task store is unavailable.") from exc

    @contextmanager
    def _using(self, conn: Optional[Connection]) -> Iterator[Connection]:
        if conn is not None:
            yield conn
        else:
            with self.transaction() as own:
                yield own

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, task_id: int, conn: Optional[Connection] = None, for_update: bool = False) -> Optional[Task]:
        """Fetch a single task by ID. Returns None if not found."""
        query = _tasks.select().where(_tasks.c.id == task_id)
        if for_update:
            query = query.with_for_update()
        with self._using(conn) as c:
            row = c.execute(query).first()
        return _row_to_task(row) if row is not None else None

    def list_by_owner(self, user_id: int, conn: Optional[Connection] = None) -> list[Task]:
        """Return every task owned by user_id, in insertion (ID) order."""
        with self._using(conn) as c:
            rows = c.execute(
                _tasks.select().where(_tasks.c.owner_user_id == user_id).order_by(_tasks.c.id)
            ).fetchall()
        return [_row_to_task(r) for r in rows]

    def list_all(self, conn: Optional[Connection] = None) -> list[Task]:
        """Return every task in the store, in insertion (ID) order."""
        with self._using(conn) as c:
            rows = c.execute(_tasks.select().order_by(_tasks.c.id)).fetchall()
        return [_row_to_task(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, task: Task, conn: Optional[Connection] = None) -> Task:
        """Insert a new task and return it with the assigned ID."""
        with self._using(conn) as c:
            result = c.execute(
                _tasks.insert().values(
                    title=task.title,
                    description=task.description,
                    status=task.status.value,
                    priority=task.priority.value,
                    owner_user_id=task.owner_user_id,
                    due_date=task.due_date,
                    created_at=task.created_at,
                    updated_at=task.updated_at,
                )
            )
            task_id = result.inserted_primary_key[0]
        return Task(
            id=task_id,
            title=task.title,
            description=task.description,
            status=task.status,
            priority=task.priority,
            owner_user_id=task.owner_user_id,
            due_date=task.due_date,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )

    def update(self, task: Task, conn: Optional[Connection] = None) -> bool:
        """Write the mutable fields of task back to its row.

        owner_user_id and created_at are never written: both are immutable
        after insert. Returns False if the row no longer exists.
        """
        with self._using(conn) as c:
            result = c.execute(
                _tasks.update()
                .where(_tasks.c.id == task.id)
                .values(
                    title=task.title,
                    description=task.description,
                    status=task.status.value,
                    priority=task.priority.value,
                    due_date=task.due_date,
                    updated_at=task.updated_at,
                )
            )
        return result.rowcount > 0

    def delete(self, task_id: int, conn: Optional[Connection] = None) -> bool:
        """Permanently delete a task. Returns True if deleted, False if not found."""
        with self._using(conn) as c:
            result = c.execute(_tasks.delete().where(_tasks.c.id == task_id))
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.transaction() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        title=row.title,
        description=row.description,
        status=TaskStatus(row.status),
        priority=TaskPriority(row.priority),
        owner_user_id=row.owner_user_id,
        due_date=row.due_date,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
