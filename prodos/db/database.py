"""
The database handle. There is exactly one open `Database` at a time, owned by the
`WorkspaceManager`, and it is closed before anything moves or replaces its file.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, List, Optional, Sequence

from prodos.config.logger import get_logger
from prodos.db.schema import SCHEMA_SQL
from prodos.errors import InvalidState
from prodos.util.format_utils import fmt_path

log = get_logger(__name__)


class Database:
    """
    A single SQLite connection to the file at `path`. Statements run in autocommit mode
    unless grouped with `transaction()`.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._conn: Optional[sqlite3.Connection] = None

    def __str__(self):
        return f"Database({fmt_path(self.path, resolve=False)})"

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> "Database":
        """
        Open (creating if needed) the database file and apply the schema to a new database.
        """
        if self._conn:
            return self

        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path), isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")

        tables_exist = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='products'"
        ).fetchone()
        if not tables_exist:
            log.info("Creating database schema: %s", fmt_path(self.path))
            conn.executescript(SCHEMA_SQL)

        self._conn = conn
        log.info("Opened database: %s", fmt_path(self.path))
        return self

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
            log.info("Closed database: %s", fmt_path(self.path))

    @property
    def conn(self) -> sqlite3.Connection:
        if not self._conn:
            raise InvalidState(f"Database is not open: {fmt_path(self.path)}")
        return self._conn

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        return self.conn.execute(sql, tuple(params))

    def query_all(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        return self.conn.execute(sql, tuple(params)).fetchall()

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        return self.conn.execute(sql, tuple(params)).fetchone()

    @contextmanager
    def transaction(self) -> Generator["Database", None, None]:
        """
        Group statements so they commit together or not at all. Nested use joins the
        outer transaction.
        """
        conn = self.conn
        if conn.in_transaction:
            yield self
            return
        conn.execute("BEGIN")
        try:
            yield self
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")


def placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)
