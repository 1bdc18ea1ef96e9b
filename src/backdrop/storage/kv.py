from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Protocol

DEFAULT_BUSY_TIMEOUT_SECONDS = 5.0

KV_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class StorageError(RuntimeError):
    """Raised when the key-value store cannot be read or written."""


class KeyValueStore(Protocol):
    def read(self, key: str) -> str | None:
        """Return the stored text for ``key`` or ``None`` when absent."""

    def write(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    def delete(self, key: str) -> None:
        """Remove ``key``; removing an absent key is not an error."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SqliteKeyValueStore:
    """Single-table SQLite store, one short-lived connection per operation.

    Two app instances may share the file; writers wait up to
    ``busy_timeout_seconds`` for the lock and the last write wins.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        busy_timeout_seconds: float = DEFAULT_BUSY_TIMEOUT_SECONDS,
    ) -> None:
        self._db_path = Path(db_path)
        self._busy_timeout_seconds = busy_timeout_seconds
        self._schema_ready = False

    def initialize(self) -> None:
        with self._session("initialize"):
            return

    def read(self, key: str) -> str | None:
        with self._session(f"read key '{key}' from") as connection:
            row = connection.execute(
                "SELECT value FROM kv_entries WHERE key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def write(self, key: str, value: str) -> None:
        with self._session(f"write key '{key}' to") as connection:
            connection.execute(
                """
                INSERT INTO kv_entries (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value=excluded.value,
                    updated_at=excluded.updated_at
                """,
                (key, value, _utc_now().isoformat()),
            )
            connection.commit()

    def delete(self, key: str) -> None:
        with self._session(f"delete key '{key}' from") as connection:
            connection.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
            connection.commit()

    @contextmanager
    def _session(self, action: str) -> Iterator[sqlite3.Connection]:
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            connection = sqlite3.connect(self._db_path, timeout=self._busy_timeout_seconds)
        except (sqlite3.Error, OSError) as exc:
            raise StorageError(f"Unable to {action} {self._db_path}") from exc

        connection.row_factory = sqlite3.Row
        try:
            if not self._schema_ready:
                connection.execute("PRAGMA journal_mode = WAL;")
                connection.executescript(KV_TABLE_SCHEMA)
                connection.commit()
                self._schema_ready = True
            yield connection
        except (sqlite3.Error, OSError) as exc:
            raise StorageError(f"Unable to {action} {self._db_path}") from exc
        finally:
            connection.close()
