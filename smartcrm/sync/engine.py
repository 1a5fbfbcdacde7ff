"""
Sync Engine - Durable, ordered queue of pending remote mutations.

Operations are appended to a persisted FIFO queue and flushed to the remote
entity store when the host is online. Flushes are triggered from three
places: queue_operation(), the periodic timer, and an offline -> online
transition. At most one flush runs at a time.

Per-operation lifecycle:
    Queued -> attempt -> Synced (removed)
                      -> Queued again with retryCount + 1 (retries left)
                      -> Failed (removed, reported, recorded in the ledger)

Usage:
    engine = SyncEngine(store, handlers, connectivity)
    engine.queue_operation("update", "contact", "c_123", {"title": "VP Sales"})
    result = engine.force_sync()
    print(result.synced, result.failed, result.errors)
    engine.close()
"""

import json
import logging
import threading
import time
from typing import Any, Callable, List, Optional

from smartcrm import config
from smartcrm.sync import conflicts
from smartcrm.sync.errors import ConflictError, InvalidOperationError, PersistenceError
from smartcrm.sync.models import (
    ConflictStrategy, OperationType, SyncOperation, SyncResult, SyncStatus,
)

logger = logging.getLogger("smartcrm.sync.engine")

DAY_MS = 24 * 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


class SyncEngine:
    """Queues mutations locally and drives them to the remote store."""

    def __init__(self, store, handlers, connectivity, failure_log=None,
                 clock: Callable[[], int] = None, max_retries: int = None,
                 sync_interval: float = None, conflict_strategy=None,
                 start_timer: bool = True, owns_connectivity: bool = False):
        self.store = store
        self.handlers = handlers
        self.connectivity = connectivity
        # Stopped by close() when the engine built it
        self.owns_connectivity = owns_connectivity
        self.failure_log = failure_log
        self.clock = clock or _now_ms
        self.max_retries = config.SYNC_MAX_RETRIES if max_retries is None else max_retries
        self.sync_interval = sync_interval or config.SYNC_INTERVAL_SECONDS
        self.conflict_strategy = ConflictStrategy(conflict_strategy) if conflict_strategy else None

        self._is_online = connectivity.is_online
        self._sync_in_progress = False
        # Guards _sync_in_progress, _is_online and _flush_threads
        self._state_lock = threading.Lock()
        # Serializes every load-mutate-save of the persisted queue
        self._queue_lock = threading.RLock()
        self._flush_threads: List[threading.Thread] = []
        self._timer_thread = None
        self._stop_event = threading.Event()

        self._unsubscribe = connectivity.subscribe(self._on_connectivity_change)
        if start_timer:
            self.start_periodic_sync()

    # ─── STATE ────────────────────────────────────────────────

    @property
    def is_online(self) -> bool:
        return self._is_online

    @property
    def sync_in_progress(self) -> bool:
        return self._sync_in_progress

    def _on_connectivity_change(self, online: bool):
        with self._state_lock:
            self._is_online = online
        if online:
            logger.info("Network connection restored")
            self._trigger_flush()
        else:
            logger.warning("Network connection lost")

    # ─── PERIODIC SYNC ────────────────────────────────────────

    def start_periodic_sync(self):
        """Start the background timer. No-op if it is already running."""
        if self._timer_thread and self._timer_thread.is_alive():
            return
        self._stop_event = threading.Event()
        self._timer_thread = threading.Thread(
            target=self._periodic_loop, args=(self._stop_event,),
            daemon=True, name="sync-timer",
        )
        self._timer_thread.start()
        logger.info("Periodic sync started (every %ss)", self.sync_interval)

    def _periodic_loop(self, stop_event: threading.Event):
        while not stop_event.wait(self.sync_interval):
            if self._is_online and not self._sync_in_progress:
                self.process_sync_queue()

    def stop_periodic_sync(self):
        self._stop_event.set()
        if self._timer_thread:
            if self._timer_thread is not threading.current_thread():
                self._timer_thread.join(timeout=5)
            self._timer_thread = None
            logger.info("Periodic sync stopped")

    def _trigger_flush(self):
        """Run a flush on a background thread without waiting for it."""
        if not self._is_online or self._sync_in_progress:
            return
        thread = threading.Thread(target=self.process_sync_queue, daemon=True, name="sync-flush")
        with self._state_lock:
            self._flush_threads = [t for t in self._flush_threads if t.is_alive()]
            self._flush_threads.append(thread)
        thread.start()

    def wait_for_idle(self, timeout: float = None) -> bool:
        """Block until background flushes started so far have finished.

        Returns False if any is still running after ``timeout`` seconds.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._state_lock:
            threads = list(self._flush_threads)
        for thread in threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
        return not any(t.is_alive() for t in threads)

    def close(self):
        """Stop the timer, detach from connectivity, and let running flushes finish.

        An owned connectivity observer with a background thread is stopped too.
        """
        self.stop_periodic_sync()
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        self.wait_for_idle(timeout=30)
        if self.owns_connectivity:
            stop = getattr(self.connectivity, "stop", None)
            if stop is not None:
                stop()

    # ─── QUEUEING ─────────────────────────────────────────────

    def queue_operation(self, op_type, entity_type, entity_id: str,
                        data: Any = None) -> SyncOperation:
        """Append a mutation to the persisted queue.

        Starts a background flush when online. Raises InvalidOperationError
        for bad arguments and PersistenceError if the queue cannot be
        written; the operation is never dropped silently.
        """
        try:
            op_type = OperationType(op_type)
        except ValueError:
            raise InvalidOperationError(f"Unknown operation type: {op_type}")
        entity_type = getattr(entity_type, "value", entity_type)
        if entity_type not in self.handlers:
            raise InvalidOperationError(f"Unknown entity type: {entity_type}")
        if not entity_id:
            raise InvalidOperationError("entity_id is required")
        entity_id = str(entity_id)

        if op_type is OperationType.DELETE:
            data = None
        elif data is None:
            raise InvalidOperationError(f"data is required for {op_type.value} operations")
        else:
            try:
                json.dumps(data)
            except (TypeError, ValueError) as e:
                raise InvalidOperationError(f"data is not JSON-serializable: {e}")

        with self._queue_lock:
            queue = self.store.load_queue(strict=True)
            now = self.clock()
            op_id = SyncOperation.make_id(op_type, entity_type, entity_id, now)
            existing = {op.id for op in queue}
            if op_id in existing:
                suffix = 2
                while f"{op_id}-{suffix}" in existing:
                    suffix += 1
                op_id = f"{op_id}-{suffix}"

            operation = SyncOperation(
                id=op_id,
                type=op_type.value,
                entity_type=entity_type,
                entity_id=entity_id,
                data=data,
                timestamp=now,
                retry_count=0,
                max_retries=self.max_retries,
            )
            queue.append(operation)
            self.store.save_queue(queue)

        logger.info("Operation queued for sync", extra={
            "operation_id": operation.id, "op_type": operation.type,
            "entity_type": entity_type, "entity_id": entity_id,
            "queue_size": len(queue),
        })

        self._trigger_flush()
        return operation

    # ─── FLUSH ────────────────────────────────────────────────

    def process_sync_queue(self) -> SyncResult:
        """Run one flush cycle. Never raises; all detail goes into the result."""
        with self._state_lock:
            if self._sync_in_progress:
                return SyncResult.unavailable("Sync not available: a sync is already in progress")
            if not self._is_online:
                return SyncResult.unavailable("Sync not available: offline")
            self._sync_in_progress = True

        result = SyncResult()
        started = time.monotonic()
        walked = False
        try:
            with self._queue_lock:
                queue = self.store.load_queue(strict=True)
            walked = True
            logger.info("Starting sync queue processing", extra={"queue_size": len(queue)})

            finished = set()
            retried = {}
            permanent = []
            for operation in queue:
                try:
                    self._process_operation(operation, result)
                    result.synced += 1
                    finished.add(operation.id)
                except Exception as e:
                    message = str(e) or type(e).__name__
                    if operation.retries_exhausted:
                        finished.add(operation.id)
                        result.failed += 1
                        result.errors.append(f"{operation.id}: {message}")
                        logger.error("Operation failed permanently: %s", message, extra={
                            "operation_id": operation.id,
                            "retry_count": operation.retry_count,
                        })
                        permanent.append((operation, message))
                    else:
                        operation.retry_count += 1
                        retried[operation.id] = operation
                        logger.warning("Operation failed, will retry: %s", message, extra={
                            "operation_id": operation.id,
                            "retry_count": operation.retry_count,
                        })

            # Re-read so operations queued during the flush are kept
            with self._queue_lock:
                current = self.store.load_queue(strict=True)
                remaining = [retried.get(op.id, op) for op in current if op.id not in finished]
                self.store.save_queue(remaining)

            # Ledger rows only for removals that were stored
            if self.failure_log is not None:
                for operation, message in permanent:
                    self.failure_log.record(operation, message)

            logger.info(
                "Sync queue processing completed: synced=%d failed=%d conflicts=%d",
                result.synced, result.failed, result.conflicts,
                extra={
                    "queue_size": len(remaining),
                    "duration_ms": int((time.monotonic() - started) * 1000),
                },
            )

        except Exception as e:
            logger.error("Sync queue processing failed: %s", e, exc_info=True)
            result.success = False
            result.errors.append(str(e))
        finally:
            if walked:
                self.store.set_last_sync(self.clock())
            with self._state_lock:
                self._sync_in_progress = False

        return result

    def force_sync(self) -> SyncResult:
        """Flush now (manual "sync now"); same preconditions as a normal flush."""
        return self.process_sync_queue()

    def _process_operation(self, operation: SyncOperation, result: SyncResult):
        handler = self.handlers.get(operation.entity_type)
        try:
            handler.dispatch(operation)
        except ConflictError as conflict:
            if self.conflict_strategy is None or operation.type != OperationType.UPDATE.value:
                raise
            result.conflicts += 1
            logger.warning("Conflict on %s, resolving with %s",
                           operation.entity_id, self.conflict_strategy.value,
                           extra={"operation_id": operation.id})
            resolved = self.resolve_conflict(
                operation, conflict.server_data, operation.data, self.conflict_strategy,
            )
            if self.conflict_strategy is ConflictStrategy.SERVER_WINS:
                return
            handler.dispatch(operation, data=resolved)

    # ─── QUERIES & MAINTENANCE ────────────────────────────────

    def get_sync_status(self) -> SyncStatus:
        return SyncStatus(
            is_online=self._is_online,
            sync_in_progress=self._sync_in_progress,
            queue_size=len(self.store.load_queue()),
            last_sync_timestamp=self.store.get_last_sync(),
        )

    def get_last_sync_timestamp(self) -> Optional[int]:
        return self.store.get_last_sync()

    def pending_operations(self) -> List[SyncOperation]:
        return self.store.load_queue()

    def clear_sync_queue(self):
        """Drop every queued operation. Destructive; operator use only."""
        with self._queue_lock:
            self.store.save_queue([])
        logger.info("Sync queue cleared")

    def resolve_conflict(self, operation: Optional[SyncOperation], server_data: Any,
                         local_data: Any, strategy) -> Any:
        return conflicts.resolve_conflict(
            operation, server_data, local_data, strategy, self.clock(),
        )

    def cleanup_old_operations(self, max_age_ms: int = None) -> int:
        """Remove queued operations older than ``max_age_ms`` regardless of retry state.

        Returns the number removed.
        """
        if max_age_ms is None:
            max_age_ms = int(config.SYNC_MAX_AGE_DAYS * DAY_MS)
        cutoff = self.clock() - max_age_ms

        with self._queue_lock:
            queue = self.store.load_queue()
            kept = [op for op in queue if op.timestamp > cutoff]
            removed = len(queue) - len(kept)
            if not removed:
                return 0
            try:
                self.store.save_queue(kept)
            except PersistenceError:
                return 0

        logger.info("Cleaned up old sync operations: removed=%d remaining=%d",
                    removed, len(kept), extra={"queue_size": len(kept)})
        return removed
