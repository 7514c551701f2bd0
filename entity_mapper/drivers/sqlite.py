"""SQLite driver implementation using the sqlite3 module."""

import sqlite3
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import structlog

from entity_mapper.driver import Connection, Driver, OnError, OnSuccess, Row, Transaction
from entity_mapper.errors import MapperError, StatementFailure

logger = structlog.get_logger()


class SQLiteTransaction(Transaction):
    """Transaction on an SQLite connection. Statements run synchronously."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self.failed = False
        self.closed = False
        self.statements = 0

    def execute(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        on_success: OnSuccess | None = None,
        on_error: OnError | None = None,
    ) -> None:
        """Execute a statement and call back with its rows."""
        if self.closed:
            raise MapperError("Transaction is already finished")

        logger.debug("Executing statement", sql=sql, params=list(params or []))
        try:
            cursor = self._conn.execute(sql, list(params or []))
            rows = self._fetch_rows(cursor)
        except sqlite3.Error as e:
            self.failed = True
            failure = StatementFailure(sql, params, e)
            logger.error("Statement failed", sql=sql, error=str(e))
            if on_error is None:
                raise failure from e
            on_error(failure)
            return

        self.statements += 1
        if on_success is not None:
            on_success(rows)

    def _fetch_rows(self, cursor: sqlite3.Cursor) -> list[Row]:
        """Convert cursor results to dicts keyed by column name.

        Args:
            cursor: Cursor of an executed statement

        Returns:
            List of rows, empty for statements that return none
        """
        if cursor.description is None:
            return []
        columns = [column[0] for column in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]


class SQLiteConnection(Connection):
    """Connection to an SQLite database file."""

    def __init__(self, conn: sqlite3.Connection, name: str) -> None:
        self._conn = conn
        self.name = name

    def transaction(self, fn: Callable[[Transaction], Any]) -> None:
        """Run ``fn`` in a transaction, rolling back if a statement failed or ``fn`` raised."""
        tx = SQLiteTransaction(self._conn)
        try:
            self._conn.execute("BEGIN")
        except sqlite3.Error as e:
            logger.error("Could not start transaction", database=self.name, error=str(e))
            raise StatementFailure("BEGIN", None, e) from e
        logger.debug("Transaction started", database=self.name)
        try:
            fn(tx)
        except BaseException:
            tx.closed = True
            self._conn.rollback()
            logger.warning("Transaction rolled back after exception", database=self.name)
            raise

        tx.closed = True
        if tx.failed:
            self._conn.rollback()
            logger.warning("Transaction rolled back after failed statement", database=self.name)
        else:
            self._conn.commit()
            logger.debug("Transaction committed", database=self.name, statements=tx.statements)

    def close(self) -> None:
        self._conn.close()
        logger.debug("Connection closed", database=self.name)


class SQLiteDriver(Driver):
    """Driver storing entities in an SQLite database."""

    def connect(self, name: str, description: str = "", size_bytes: int = 0) -> SQLiteConnection:
        """Open an SQLite database.

        Args:
            name: Path of the database file, or ":memory:"
            description: Human-readable description, only logged
            size_bytes: Size quota, only logged since SQLite does not enforce one

        Returns:
            An open connection
        """
        path = name
        if name != ":memory:":
            db_file = Path(name).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            path = str(db_file)

        logger.debug("Opening SQLite database", name=name, description=description, size_bytes=size_bytes)
        conn = sqlite3.connect(path, isolation_level=None)
        logger.info("SQLite database opened", name=name)
        return SQLiteConnection(conn, name)
