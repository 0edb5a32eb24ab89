"""
Sync Controller
===============
API endpoints for data synchronization and reconciliation.

ENDPOINTS:
---------
POST /api/sync/full                 - Start full sync (replace per table)
POST /api/sync/incremental          - Start incremental sync (upsert, date range)
GET  /api/sync/status/{session_id}  - Progress and summary of one run
GET  /api/sync/sessions             - Runs known to this process
GET  /api/sync/history              - Persisted run history
POST /api/sync/repair               - Re-link voucher line items
POST /api/sync/recalculate-amounts  - Recompute voucher totals
GET  /api/sync/schedule             - Scheduler status per scheduled tenant
POST /api/sync/schedule/run         - Run due scheduled syncs (or one tenant) now

BACKGROUND TASKS:
----------------
Syncs run in background (BackgroundTasks). The session returned by the
start endpoints is kept in app.state.sync_sessions and updated through
the orchestrator's progress callback. The tenant is reserved before the
task is queued, so a second start for the same tenant gets 409 at once.
"""

from typing import Dict, Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request

from ..models.reconcile import AmountRecalcResult, RepairResult
from ..models.response import SyncStartedResponse
from ..models.sync import ReconcileRequest, SyncRequest, SyncSession, TenantRequest
from ..models.tenant import TenantScope
from ..services.amount_service import amount_service
from ..services.export_config import export_definitions
from ..services.repair_service import repair_service
from ..services.scheduler_service import scheduler_service
from ..services.sync_service import sync_service
from ..utils.constants import ErrorCode, SyncMode
from ..utils.exceptions import PersistenceError
from ..utils.logger import logger
from ..views.json_view import JsonView

router = APIRouter()


def _sessions(request: Request) -> Dict[str, SyncSession]:
    if not hasattr(request.app.state, "sync_sessions"):
        request.app.state.sync_sessions = {}
    return request.app.state.sync_sessions


def _start(request: Request, background_tasks: BackgroundTasks, body: SyncRequest, mode: str) -> SyncStartedResponse:
    tenant = TenantScope(company_id=body.company_id, division_id=body.division_id)

    unknown = [c for c in (body.categories or []) if c not in export_definitions.names()]
    if unknown:
        raise HTTPException(
            status_code=400,
            detail=JsonView.error(ErrorCode.VALIDATION_ERROR, f"Unknown categories: {', '.join(unknown)}")
        )
    session = SyncSession(tenant=tenant, mode=mode)
    if not sync_service.try_reserve(tenant, session.session_id):
        raise HTTPException(
            status_code=409,
            detail=JsonView.error(ErrorCode.SYNC_IN_PROGRESS, f"Sync already in progress for {tenant.key}")
        )

    sessions = _sessions(request)
    sessions[session.session_id] = session

    def on_progress(current: SyncSession) -> None:
        sessions[current.session_id] = current

    background_tasks.add_task(
        sync_service.run, tenant, mode, body.categories, body.from_date, body.to_date, on_progress, session
    )
    logger.info(f"{mode.capitalize()} sync {session.session_id} requested for {tenant.key}")
    return SyncStartedResponse(
        status="started",
        session_id=session.session_id,
        message=f"{mode.capitalize()} sync started for {tenant.key}"
    )


@router.post("/full", response_model=SyncStartedResponse)
async def trigger_full_sync(body: SyncRequest, request: Request, background_tasks: BackgroundTasks):
    """Trigger full data synchronization"""
    return _start(request, background_tasks, body, SyncMode.FULL)


@router.post("/incremental", response_model=SyncStartedResponse)
async def trigger_incremental_sync(body: SyncRequest, request: Request, background_tasks: BackgroundTasks):
    """Trigger incremental synchronization for a date range"""
    return _start(request, background_tasks, body, SyncMode.INCREMENTAL)


@router.get("/status/{session_id}", response_model=SyncSession)
async def get_sync_status(session_id: str, request: Request):
    """Progress and summary of one run"""
    session = _sessions(request).get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=JsonView.error(ErrorCode.NOT_FOUND, "Unknown sync session"))
    return session


@router.get("/sessions")
async def list_sessions(request: Request, company_id: Optional[str] = None):
    """Runs started by this process, newest first"""
    sessions = [
        s for s in _sessions(request).values()
        if company_id is None or s.tenant.company_id == company_id
    ]
    sessions.sort(key=lambda s: s.started_at.isoformat() if s.started_at else "", reverse=True)
    return {"sessions": [s.model_dump(mode="json") for s in sessions], "count": len(sessions)}


@router.get("/history")
async def get_sync_history(
    company_id: Optional[str] = None,
    division_id: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500)
):
    """Persisted run history"""
    tenant = TenantScope(company_id=company_id, division_id=division_id) if company_id and division_id else None
    try:
        history = await sync_service.get_sync_history(tenant, limit)
    except PersistenceError as e:
        logger.error(f"Failed to read sync history: {e}")
        raise HTTPException(status_code=500, detail=JsonView.error(ErrorCode.DATABASE_ERROR, str(e)))
    return {"history": history, "count": len(history)}


@router.post("/repair", response_model=RepairResult)
async def repair_relationships(body: ReconcileRequest):
    """Backfill voucher_guid on accounting and inventory entries"""
    tenant = TenantScope(company_id=body.company_id, division_id=body.division_id)
    try:
        return await repair_service.repair(tenant, body.diagnostic_voucher_number)
    except PersistenceError as e:
        logger.error(f"Repair failed for {tenant.key}: {e}")
        raise HTTPException(status_code=500, detail=JsonView.error(ErrorCode.DATABASE_ERROR, str(e)))


@router.post("/recalculate-amounts", response_model=AmountRecalcResult)
async def recalculate_amounts(body: ReconcileRequest):
    """Recompute voucher totals from positive accounting entries"""
    tenant = TenantScope(company_id=body.company_id, division_id=body.division_id)
    try:
        return await amount_service.recalculate(tenant)
    except PersistenceError as e:
        logger.error(f"Amount recalculation failed for {tenant.key}: {e}")
        raise HTTPException(status_code=500, detail=JsonView.error(ErrorCode.DATABASE_ERROR, str(e)))


@router.get("/schedule")
async def get_schedule():
    """Scheduler status with last attempt/success per scheduled tenant"""
    return scheduler_service.get_status()


@router.post("/schedule/run")
async def run_scheduled_syncs(background_tasks: BackgroundTasks, body: Optional[TenantRequest] = None):
    """Run due scheduled syncs now, or one scheduled tenant regardless of its frequency"""
    only = None
    if body is not None:
        only = TenantScope(company_id=body.company_id, division_id=body.division_id)
        scheduled = {(t.company_id, t.division_id) for t in scheduler_service.settings.tenants}
        if (only.company_id, only.division_id) not in scheduled:
            raise HTTPException(
                status_code=404,
                detail=JsonView.error(ErrorCode.NOT_FOUND, f"{only.key} is not a scheduled tenant")
            )

    background_tasks.add_task(scheduler_service.run_due, None, only)
    target = only.key if only else "due tenants"
    logger.info(f"Scheduled sync triggered manually for {target}")
    return {"status": "started", "message": f"Scheduled sync triggered for {target}"}
