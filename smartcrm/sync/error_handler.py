"""
Sync Failure Ledger - Records operations that failed permanently.

An operation that exhausts its retries is dropped from the queue. Before it
goes, the engine records it here so the UI can show "N changes failed to
sync" and an operator can inspect the payload and re-enter the data.

Usage:
    from smartcrm.sync.error_handler import SyncFailureLog

    failures = SyncFailureLog(db_path)
    failures.record(operation, "HTTP 500 from contact API")
    for f in failures.list_failures():
        print(f["operation_id"], f["error_message"])
    failures.resolve(f["id"])
"""

import json
import logging
import sqlite3
from typing import List

from smartcrm.db.connection import get_db_conn
from smartcrm.db.init_db import init_db
from smartcrm.sync.models import SyncOperation

logger = logging.getLogger("smartcrm.sync.error_handler")


class SyncFailureLog:
    """sync_failures table access."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_db(db_path)

    def record(self, operation: SyncOperation, message: str, severity: str = "error"):
        """Log a permanent failure to the logger and the database.

        A database error is logged, never raised: the failure has already
        been reported through the logger and the SyncResult.
        """
        log_extra = {
            "operation_id": operation.id,
            "op_type": operation.type,
            "entity_type": operation.entity_type,
            "entity_id": operation.entity_id,
            "retry_count": operation.retry_count,
        }
        if severity == "critical":
            logger.critical("Sync failure recorded: %s", message, extra=log_extra)
        else:
            logger.error("Sync failure recorded: %s", message, extra=log_extra)

        try:
            with get_db_conn(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO sync_failures
                        (operation_id, op_type, entity_type, entity_id, payload,
                         error_message, retry_count, severity)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    operation.id, operation.type, operation.entity_type,
                    operation.entity_id, json.dumps(operation.data, default=str),
                    message, operation.retry_count, severity,
                ))
                conn.commit()
        except sqlite3.Error as db_err:
            logger.error("Failed to record sync failure to DB: %s", db_err)

    def list_failures(self, unresolved_only: bool = True, limit: int = 100) -> List[dict]:
        query = "SELECT * FROM sync_failures"
        if unresolved_only:
            query += " WHERE resolved=0"
        query += " ORDER BY id DESC LIMIT ?"
        with get_db_conn(self.db_path) as conn:
            rows = conn.execute(query, (limit,)).fetchall()

        failures = []
        for row in rows:
            item = dict(row)
            try:
                item["payload"] = json.loads(item["payload"]) if item["payload"] else None
            except ValueError:
                pass
            failures.append(item)
        return failures

    def count_unresolved(self) -> int:
        try:
            with get_db_conn(self.db_path) as conn:
                return conn.execute(
                    "SELECT COUNT(*) FROM sync_failures WHERE resolved=0"
                ).fetchone()[0]
        except sqlite3.Error as e:
            logger.error("Failed to count sync failures: %s", e)
            return 0

    def resolve(self, failure_id: int) -> bool:
        """Mark a failure as handled. Returns False if no such failure."""
        with get_db_conn(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE sync_failures SET resolved=1 WHERE id=? AND resolved=0", (failure_id,)
            )
            conn.commit()
            return cur.rowcount > 0
