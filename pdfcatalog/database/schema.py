"""Database schema definition."""

import sqlite3

SCHEMA_SQL = """
-- String-keyed persisted entries, values are JSON documents
CREATE TABLE IF NOT EXISTS kv_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at_unix REAL NOT NULL,
    updated_at INTEGER NOT NULL
);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables if they don't exist."""
    conn.executescript(SCHEMA_SQL)
    conn.commit()
