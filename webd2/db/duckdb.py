"""DuckDB transport."""

from typing import Any

import duckdb
import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from webd2.db.base import BaseTransport
from webd2.errors import UsageError


def _to_raw(value: Any) -> Any:
    """Render values the way the textual storage layer does for logical columns."""
    if isinstance(value, bool):
        return "1" if value else "0"
    return value


class DuckDBTransport(BaseTransport):
    """DuckDB transport.

    Holds one database handle for its lifetime; every ``open()`` hands out a
    fresh connection to it, so an in-memory database survives open/close
    cycles.
    """

    def __init__(self, path: str = ":memory:"):
        """Initialize DuckDB transport.

        Args:
            path: Database file path or ":memory:" for in-memory database
        """
        self.path = path
        self._database = duckdb.connect(path)
        self._conn: duckdb.DuckDBPyConnection | None = None

    def open(self) -> None:
        if self._conn is not None:
            raise UsageError("there is opened db connection already")
        self._conn = self._database.cursor()

    def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        conn.close()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise UsageError("db connection is not opened")
        return self._conn

    def execute(self, sql: str) -> list[dict[str, Any]]:
        """Execute SQL and return rows as dicts keyed by column alias."""
        result = self._connection().execute(sql)
        if not self._is_query(sql):
            return []
        columns = [col[0] for col in result.description]
        return [dict(zip(columns, (_to_raw(value) for value in row))) for row in result.fetchall()]

    def _is_query(self, sql: str) -> bool:
        try:
            parsed = sqlglot.parse_one(sql, read=self.dialect)
        except SqlglotError:
            return sql.lstrip().upper().startswith(("SELECT", "WITH"))
        return isinstance(parsed, exp.Query)

    def begin(self) -> None:
        self._connection().begin()

    def commit(self) -> None:
        self._connection().commit()

    def rollback(self) -> None:
        self._connection().rollback()

    def dispose(self) -> None:
        """Close the connection and the database handle."""
        self.close()
        self._database.close()

    @property
    def dialect(self) -> str:
        return "duckdb"

    @property
    def raw_connection(self) -> Any:
        """Underlying DuckDB database handle."""
        return self._database

    @classmethod
    def from_url(cls, url: str) -> "DuckDBTransport":
        """Create transport from connection URL.

        Args:
            url: Connection URL (e.g., "duckdb:///:memory:" or "duckdb:///path/to/db.duckdb")
        """
        if not url.startswith("duckdb://"):
            raise ValueError(f"Invalid DuckDB URL: {url}")

        # duckdb:///:memory: -> :memory:
        # duckdb:///tmp/app.db -> /tmp/app.db
        # duckdb:/// -> :memory:
        # duckdb:////tmp/app.db -> /tmp/app.db
        db_path = url[len("duckdb://") :]

        if db_path in ("/:memory:", ":memory:", "", "/"):
            db_path = ":memory:"
        elif db_path.startswith("//"):
            db_path = db_path[1:]

        return cls(db_path)
