"""Builds a SyncEngine wired from smartcrm.config."""

import logging

from smartcrm import config
from smartcrm.remote.contact_api import ContactAPIClient
from smartcrm.sync.connectivity import HttpProbeConnectivity, ManualConnectivity
from smartcrm.sync.engine import SyncEngine
from smartcrm.sync.error_handler import SyncFailureLog
from smartcrm.sync.handlers import default_registry
from smartcrm.sync.storage import SQLiteKeyValueStore, SyncQueueStore

logger = logging.getLogger("smartcrm.sync.factory")


def build_connectivity():
    if config.CONNECTIVITY_MODE == "probe":
        observer = HttpProbeConnectivity(
            config.CONNECTIVITY_PROBE_URL,
            interval=config.CONNECTIVITY_PROBE_SECONDS,
        )
        observer.probe()
        observer.start()
        return observer
    return ManualConnectivity(initial=True)


def build_engine(db_path: str = None, connectivity=None, contact_client=None,
                 start_timer: bool = True) -> SyncEngine:
    path = db_path or config.DB_PATH
    engine = SyncEngine(
        store=SyncQueueStore(SQLiteKeyValueStore(path)),
        handlers=default_registry(contact_client or ContactAPIClient()),
        connectivity=connectivity or build_connectivity(),
        failure_log=SyncFailureLog(path),
        max_retries=config.SYNC_MAX_RETRIES,
        sync_interval=config.SYNC_INTERVAL_SECONDS,
        conflict_strategy=config.SYNC_CONFLICT_STRATEGY or None,
        start_timer=start_timer,
        owns_connectivity=connectivity is None,
    )
    logger.info("Sync engine ready (db=%s, connectivity=%s)",
                path, type(engine.connectivity).__name__)
    return engine
