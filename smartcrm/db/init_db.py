"""
SmartCRM - Database Initialization
Creates the local tables backing the sync queue and the failure ledger.
"""

import os
import sqlite3

from smartcrm import config

SCHEMA_SQL = """
-- Durable key/value storage (sync queue, last sync timestamp)
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT,
    updated_at TEXT DEFAULT (datetime('now'))
);

-- Operations that exhausted their retries
CREATE TABLE IF NOT EXISTS sync_failures (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    operation_id TEXT NOT NULL,
    op_type TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    payload TEXT DEFAULT 'null',
    error_message TEXT,
    retry_count INTEGER DEFAULT 0,
    severity TEXT DEFAULT 'error',
    resolved INTEGER DEFAULT 0,
    created_at TEXT DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_sync_failures_resolved ON sync_failures(resolved);
CREATE INDEX IF NOT EXISTS idx_sync_failures_entity ON sync_failures(entity_type, entity_id);
"""

TABLES = ("kv_store", "sync_failures")


def init_db(db_path=None):
    """Create all tables. Safe to call on an existing database."""
    path = db_path or config.DB_PATH
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.executescript(SCHEMA_SQL)
    conn.commit()
    conn.close()
    return path


def verify_db(db_path=None):
    """Return row counts per table, or an error entry for missing tables."""
    path = db_path or config.DB_PATH
    conn = sqlite3.connect(path)
    counts = {}
    for table in TABLES:
        try:
            counts[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        except sqlite3.OperationalError as e:
            counts[table] = f"ERROR: {e}"
    conn.close()
    return counts


if __name__ == "__main__":
    path = init_db()
    print(f"Database initialized at {path}")
    for table, count in verify_db(path).items():
        print(f"  {table}: {count}")
