import sqlite3
from pathlib import Path
from typing import Optional

from cashbook.backends.base import BaseBackend
from cashbook.core.models import format_timestamp, utcnow
from cashbook.errors import PersistenceError


def _init_db(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS snapshots (
            key TEXT PRIMARY KEY,
            payload TEXT NOT NULL,
            saved_at TEXT NOT NULL
        )
        """
    )
    conn.commit()


class SQLiteBackend(BaseBackend):
    """Keep snapshot slots as rows of a single SQLite table.

    Parameters
    ----------
    config:
        Mapping providing ``db_path``, the SQLite database file.
    """

    def __init__(self, config):
        self.db_path = Path(config.get("db_path", "cashbook.db"))

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        _init_db(conn)
        return conn

    def load(self, key: str) -> Optional[str]:
        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT payload FROM snapshots WHERE key = ?", (key,)
                ).fetchone()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            raise PersistenceError(f"Could not read '{key}' from {self.db_path}: {exc}") from exc
        return row[0] if row else None

    def save(self, key: str, text: str) -> None:
        try:
            conn = self._connect()
            try:
                conn.execute(
                    """
                    INSERT INTO snapshots (key, payload, saved_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        payload = excluded.payload,
                        saved_at = excluded.saved_at
                    """,
                    (key, text, format_timestamp(utcnow())),
                )
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            raise PersistenceError(f"Could not write '{key}' to {self.db_path}: {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            conn = self._connect()
            try:
                conn.execute("DELETE FROM snapshots WHERE key = ?", (key,))
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            raise PersistenceError(f"Could not remove '{key}' from {self.db_path}: {exc}") from exc
