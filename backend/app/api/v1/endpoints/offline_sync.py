"""
Offline Sync API Endpoints.

Devices upload submissions buffered while offline and trigger replay once
connectivity returns. Drivers replay their own queue; staff replay all.
"""

from datetime import datetime, timezone
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.core.guards import require_any_role, DriverScopeGuard
from backend.app.models.enums import OfflineSubmissionKind, OfflineSubmissionStatus
from backend.app.schemas.offline_sync import (
    OfflineSubmissionCreate,
    EnqueueResponse,
    PendingCountResponse,
    ReplayResponse,
)
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.cache import QueryCache, CacheKey, get_query_cache
from backend.app.services.edge_functions import EdgeFunctionClient, get_edge_function_client
from backend.app.services.incident_service import IncidentService
from backend.app.services.offline_sync import OfflineSyncService
from backend.app.services.settings_service import SettingsService

router = APIRouter(prefix="/offline-sync", tags=["Offline Sync"])
driver_scope = DriverScopeGuard()


async def _announce_incident(db: AsyncSession, edge: EdgeFunctionClient, incident_id: UUID) -> None:
    incident = await IncidentService.get_incident(db, incident_id)
    await log_event(
        db=db,
        action=AuditAction.INCIDENT_REPORTED,
        actor={"user_id": incident.driver_id},
        entity_type="spill_incident",
        entity_id=incident.id,
        metadata={
            "source": "offline_sync",
            "vehicle_id": str(incident.vehicle_id),
            "severity": incident.severity.value,
            "spill_type": incident.spill_type
        }
    )
    await edge.notify_incident(IncidentService.notification_payload(incident))


@router.post("/submissions", response_model=EnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def enqueue_submission(
    submission_data: OfflineSubmissionCreate,
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    """
    Store a buffered submission.

    A repeated idempotency key returns the existing submission with
    duplicate=true and stores nothing.
    """
    submission, duplicate = await OfflineSyncService.enqueue(db, submission_data, current_user)
    pending = await OfflineSyncService.pending_count(db, current_user["user_id"])
    return EnqueueResponse(
        id=submission.id,
        status=submission.status,
        duplicate=duplicate,
        pending_count=pending,
    )


@router.get("/pending-count", response_model=PendingCountResponse)
async def pending_count(
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    """Pending submissions for the caller (all pending for staff)."""
    count = await OfflineSyncService.pending_count(db, driver_scope.filter_driver_id(current_user))
    return PendingCountResponse(pending_count=count)


@router.post("/replay", response_model=ReplayResponse)
async def replay_submissions(
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    edge: EdgeFunctionClient = Depends(get_edge_function_client),
):
    """
    Process due submissions oldest first.

    Replayed driver incidents are audited and sent to notify-incident the
    same way as a live driver log.
    """
    result = await OfflineSyncService.replay(
        db,
        now=datetime.now(timezone.utc),
        timezone_name=await SettingsService.get_company_timezone(db),
        submitted_by=driver_scope.filter_driver_id(current_user),
        limit=limit,
    )

    if result.processed:
        await cache.invalidate(CacheKey.INCIDENTS, CacheKey.SPILL_KITS_STATUS)

    for outcome in result.outcomes:
        if outcome.status != OfflineSubmissionStatus.PROCESSED or outcome.kind != OfflineSubmissionKind.DRIVER_INCIDENT:
            continue
        await _announce_incident(db, edge, outcome.result_id)

    return result
