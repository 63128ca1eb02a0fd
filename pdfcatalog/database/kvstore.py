"""String-keyed persisted store backed by the kv_entries table."""

import json
import logging
import time
from typing import Any

from pdfcatalog.database.connection import Database
from pdfcatalog.errors import StoreFullError

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Key-value store with a fixed total capacity, measured in characters.

    A write that would push the combined length of all stored values past
    ``capacity_bytes`` raises :class:`StoreFullError` and leaves the previous
    value untouched.
    """

    def __init__(self, database: Database, capacity_bytes: int | None = None) -> None:
        self.db = database
        self.capacity_bytes = capacity_bytes

    def get(self, key: str) -> str | None:
        row = self.db.conn.execute("SELECT value FROM kv_entries WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        if self.capacity_bytes is not None:
            projected = self.total_bytes(exclude=key) + len(value)
            if projected > self.capacity_bytes:
                raise StoreFullError(
                    f"Writing {key!r} needs {projected} bytes, capacity is {self.capacity_bytes}"
                )

        now = time.time()
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO kv_entries (key, value, updated_at_unix, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at_unix = excluded.updated_at_unix,
                    updated_at = excluded.updated_at
                """,
                (key, value, now, int(now)),
            )

    def remove(self, key: str) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))

    def keys(self) -> list[str]:
        rows = self.db.conn.execute("SELECT key FROM kv_entries ORDER BY key").fetchall()
        return [row["key"] for row in rows]

    def total_bytes(self, exclude: str | None = None) -> int:
        row = self.db.conn.execute(
            "SELECT COALESCE(SUM(LENGTH(value)), 0) FROM kv_entries WHERE key IS NOT ?",
            (exclude,),
        ).fetchone()
        return int(row[0])

    def get_json(self, key: str, default: Any = None) -> Any:
        """Decode a JSON value, returning ``default`` when missing or unreadable."""
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Unreadable value for key %s: %s", key, e)
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value, separators=(",", ":")))
