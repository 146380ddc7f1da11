"""SQLite-backed key/value store for persisted run state.

Holds small string values (the JSON ledger, cached task list ids) that must
survive between runs. Each write commits immediately.
"""

import sqlite3
from datetime import UTC, datetime
from pathlib import Path


class PropertyStore:
    """Persistent string properties keyed by name.

    Usage::

        with PropertyStore("/path/to/state.db") as props:
            props.set("taskListId_CVS Work", "abc123")
            list_id = props.get("taskListId_CVS Work")
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS properties (
                key        TEXT PRIMARY KEY,
                value      TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "PropertyStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def get(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM properties WHERE key = ?", (key,)
        ).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        """Insert or overwrite a property."""
        self._conn.execute(
            "INSERT INTO properties (key, value, updated_at) VALUES (?, ?, ?)"
            " ON CONFLICT(key) DO UPDATE SET value = excluded.value,"
            " updated_at = excluded.updated_at",
            (key, value, datetime.now(UTC).isoformat()),
        )
        self._conn.commit()
