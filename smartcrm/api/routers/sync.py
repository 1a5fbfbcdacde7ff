"""Sync queue routes."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from smartcrm.sync.connectivity import ManualConnectivity
from smartcrm.sync.engine import DAY_MS, SyncEngine
from smartcrm.sync.errors import (
    InvalidOperationError, ManualResolutionRequired, PersistenceError,
)
from smartcrm.sync.models import OperationType

router = APIRouter(prefix="/api/sync", tags=["sync"])


class OperationCreate(BaseModel):
    type: OperationType
    entity_type: str
    entity_id: str
    data: Optional[Any] = None


class CleanupRequest(BaseModel):
    max_age_days: Optional[float] = None


class ConnectivityUpdate(BaseModel):
    online: bool


class ConflictResolveRequest(BaseModel):
    strategy: str
    server_data: Optional[dict] = None
    local_data: Optional[dict] = None


def get_engine(request: Request) -> SyncEngine:
    engine = request.app.state.engine
    if engine is None:
        raise HTTPException(status_code=503, detail="Sync engine not ready")
    return engine


def _status(engine: SyncEngine) -> dict:
    status = engine.get_sync_status().to_dict()
    failure_log = engine.failure_log
    status["failed_count"] = failure_log.count_unresolved() if failure_log else 0
    return status


@router.get("/status")
def sync_status(engine: SyncEngine = Depends(get_engine)):
    return _status(engine)


@router.get("/queue")
def list_queue(engine: SyncEngine = Depends(get_engine)):
    return [op.to_dict() for op in engine.pending_operations()]


@router.post("/operations", status_code=201)
def queue_operation(op: OperationCreate, engine: SyncEngine = Depends(get_engine)):
    try:
        queued = engine.queue_operation(op.type, op.entity_type, op.entity_id, op.data)
    except InvalidOperationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return queued.to_dict()


@router.post("/flush")
def force_sync(engine: SyncEngine = Depends(get_engine)):
    return engine.force_sync().to_dict()


@router.delete("/queue")
def clear_queue(engine: SyncEngine = Depends(get_engine)):
    try:
        engine.clear_sync_queue()
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"cleared": True}


@router.post("/cleanup")
def cleanup(req: Optional[CleanupRequest] = None, engine: SyncEngine = Depends(get_engine)):
    max_age_ms = None
    if req is not None and req.max_age_days is not None:
        if req.max_age_days <= 0:
            raise HTTPException(status_code=400, detail="max_age_days must be positive")
        max_age_ms = int(req.max_age_days * DAY_MS)
    removed = engine.cleanup_old_operations(max_age_ms)
    return {"removed": removed, "queue_size": len(engine.pending_operations())}


@router.post("/connectivity")
def set_connectivity(update: ConnectivityUpdate, engine: SyncEngine = Depends(get_engine)):
    if not isinstance(engine.connectivity, ManualConnectivity):
        raise HTTPException(status_code=409, detail="Connectivity is probed, not reported")
    engine.connectivity.set_online(update.online)
    return _status(engine)


@router.post("/resolve")
def resolve_conflict(req: ConflictResolveRequest, engine: SyncEngine = Depends(get_engine)):
    try:
        resolved = engine.resolve_conflict(None, req.server_data, req.local_data, req.strategy)
    except ManualResolutionRequired as e:
        raise HTTPException(status_code=501, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"strategy": req.strategy, "resolved": resolved}


@router.get("/failures")
def list_failures(unresolved_only: bool = True, limit: int = 100,
                  engine: SyncEngine = Depends(get_engine)):
    if engine.failure_log is None:
        return []
    return engine.failure_log.list_failures(unresolved_only=unresolved_only, limit=limit)


@router.post("/failures/{failure_id}/resolve")
def resolve_failure(failure_id: int, engine: SyncEngine = Depends(get_engine)):
    if engine.failure_log is None or not engine.failure_log.resolve(failure_id):
        raise HTTPException(status_code=404, detail="Failure not found")
    return {"id": failure_id, "resolved": True}
