"""SQLite database backend."""

import asyncio
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from rbac_authority.exceptions import ConstraintViolationError
from rbac_authority.protocols.database import Row, bind_named_params


class SQLiteDatabase:
    """SQLite database backend.

    Suitable for development and single-process deployments.
    Uses an async wrapper around sqlite3; every statement and every
    transaction is serialized through one lock.

    Use one instance per database file within a process. The lock only
    covers a single instance, and sqlite3 waits for another connection's
    write lock synchronously, blocking the event loop for up to
    ``busy_timeout`` seconds before raising "database is locked".
    """

    def __init__(
        self,
        path: str | None = None,
        busy_timeout: float = 1.0,
        **kwargs: Any,
    ) -> None:
        """Initialize SQLite database.

        Args:
            path: Path to SQLite database file. Defaults to ./data/rbac.db
                  Use ":memory:" for in-memory database.
            busy_timeout: Seconds to wait for another connection's lock
            **kwargs: Ignored (for compatibility with other backends)
        """
        if path == ":memory:":
            self.path: str | Path = ":memory:"
        else:
            self.path = Path(path) if path else Path("./data/rbac.db")
            self.path.parent.mkdir(parents=True, exist_ok=True)

        self.busy_timeout = busy_timeout
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()
        self._tx_owner: asyncio.Task[Any] | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.path), timeout=self.busy_timeout, check_same_thread=False
            )
            self._conn.row_factory = sqlite3.Row
            # Off by default in SQLite, needed for ON DELETE CASCADE
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def _owns_transaction(self) -> bool:
        """Check whether the current task has an open transaction."""
        return self._tx_owner is not None and self._tx_owner is asyncio.current_task()

    def _run(self, statement: Any) -> list[sqlite3.Row]:
        """Run a statement callable, committing outside transactions."""
        conn = self._get_connection()
        try:
            rows = statement(conn)
        except sqlite3.Error as e:
            if self._tx_owner is None:
                conn.rollback()
            if isinstance(e, sqlite3.IntegrityError):
                raise ConstraintViolationError.from_message(str(e)) from e
            raise

        if self._tx_owner is None:
            conn.commit()
        return rows

    async def execute(
        self,
        query: str,
        params: dict[str, Any] | None = None,
    ) -> list[Row]:
        """Execute a query and return results."""
        query, values = bind_named_params(query, params)

        def statement(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            return conn.execute(query, values).fetchall()

        if self._owns_transaction():
            rows = self._run(statement)
        else:
            async with self._lock:
                rows = self._run(statement)

        return [Row(_data=dict(row)) for row in rows]

    async def execute_many(
        self,
        query: str,
        params_list: list[dict[str, Any]],
    ) -> None:
        """Execute a query multiple times with different parameters."""
        if not params_list:
            return

        bound = [bind_named_params(query, params) for params in params_list]
        positional_query = bound[0][0]

        def statement(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            conn.executemany(positional_query, [values for _, values in bound])
            return []

        if self._owns_transaction():
            self._run(statement)
        else:
            async with self._lock:
                self._run(statement)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SQLiteDatabase"]:
        """Start a transaction.

        Takes the write lock up front (BEGIN IMMEDIATE) and holds the
        backend lock until commit or rollback. SQLite doesn't support
        nested transactions: re-entering from the owning task joins the
        open one.
        """
        if self._owns_transaction():
            yield self
            return

        async with self._lock:
            conn = self._get_connection()
            conn.execute("BEGIN IMMEDIATE")
            self._tx_owner = asyncio.current_task()
            try:
                yield self
                conn.commit()
            except BaseException:
                conn.rollback()
                raise
            finally:
                self._tx_owner = None

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
