"""SQLite connection used by the conversation store."""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any


class Database:
    """Single sqlite3 connection with row access by column name.

    ``db_path`` may be ``":memory:"`` for a throwaway database; a file path
    has its parent directories created.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")

    def execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        return self._conn.execute(sql, params)

    def executescript(self, sql: str) -> sqlite3.Cursor:
        """Run a multi-statement script. sqlite3 commits any open transaction first."""
        return self._conn.executescript(sql)

    @contextmanager
    def transaction(self) -> Iterator["Database"]:
        """Commit the statements run inside the block, or roll them back on error."""
        try:
            yield self
        except BaseException:
            self._conn.rollback()
            raise
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()
