"""
Database connection utilities.
Centralizes get_db() and the get_db_conn() context manager.
"""

import logging
import sqlite3
from contextlib import contextmanager

from smartcrm import config

logger = logging.getLogger(__name__)


def get_db(db_path: str = None):
    """Get a database connection with row_factory for dict-like access."""
    conn = sqlite3.connect(db_path or config.DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute(f"PRAGMA journal_mode={config.DB_JOURNAL_MODE}")
    return conn


@contextmanager
def get_db_conn(db_path: str = None):
    """Context manager for database connections. Ensures connections are always closed."""
    conn = get_db(db_path)
    try:
        yield conn
    finally:
        conn.close()
