"""
Spill Incident API Endpoints.

Office staff file full incident reports and review them; drivers log quick
reports from the field and see only their own. Decontamination logs close
out an incident once the vehicle has been cleaned.
"""

import json
from datetime import datetime, timezone
from typing import Optional, List
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, Response, UploadFile, File, status
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.core.guards import require_staff, require_any_role, require_role, DriverScopeGuard
from backend.app.models.enums import IncidentSeverity, IncidentStatus, UserRole
from backend.app.models.spill_incident import SpillIncidentReport
from backend.app.schemas.decon_log import DeconLogCreate, DeconLogResponse
from backend.app.schemas.spill_incident import (
    IncidentCreate,
    DriverIncidentCreate,
    IncidentStatusUpdate,
    IncidentResponse,
    IncidentListResponse,
    IncidentPhotoResponse,
    PhotoUploadResponse,
    IncidentSummaryResponse,
)
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.cache import QueryCache, CacheKey, get_query_cache
from backend.app.services.decon_service import DeconService
from backend.app.services.edge_functions import EdgeFunctionClient, get_edge_function_client
from backend.app.services.incident_service import IncidentService
from backend.app.services.storage import StorageClient, get_storage_client

router = APIRouter(prefix="/spill-incidents", tags=["Spill Incidents"])
driver_scope = DriverScopeGuard()

MAX_PHOTO_BYTES = 10 * 1024 * 1024


async def _get_incident_or_404(db: AsyncSession, incident_id: UUID) -> SpillIncidentReport:
    incident = await IncidentService.get_incident(db, incident_id)
    if not incident:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Incident not found"
        )
    return incident


async def _finish_create(
    db: AsyncSession,
    cache: QueryCache,
    edge: EdgeFunctionClient,
    incident: SpillIncidentReport,
    current_user: dict,
    source: str,
) -> IncidentResponse:
    await db.commit()
    await cache.invalidate(CacheKey.INCIDENTS)
    incident = await IncidentService.get_incident(db, incident.id)

    await log_event(
        db=db,
        action=AuditAction.INCIDENT_REPORTED,
        actor=current_user,
        entity_type="spill_incident",
        entity_id=incident.id,
        metadata={
            "source": source,
            "vehicle_id": str(incident.vehicle_id),
            "severity": incident.severity.value,
            "spill_type": incident.spill_type
        }
    )

    # Alert failures are logged inside the client and never fail the report
    await edge.notify_incident(IncidentService.notification_payload(incident))

    return IncidentResponse.model_validate(incident)


@router.post("", response_model=IncidentResponse, status_code=status.HTTP_201_CREATED)
async def create_incident(
    incident_data: IncidentCreate,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    edge: EdgeFunctionClient = Depends(get_edge_function_client),
):
    """
    File a full incident report (staff).

    Witnesses and already-uploaded photo URLs are stored with the report.
    """
    incident = await IncidentService.create_incident(
        db, incident_data, current_user["user_id"], datetime.now(timezone.utc)
    )
    return await _finish_create(db, cache, edge, incident, current_user, "office")


@router.post("/driver-log", response_model=IncidentResponse, status_code=status.HTTP_201_CREATED)
async def create_driver_log(
    incident_data: DriverIncidentCreate,
    current_user: dict = Depends(require_role([UserRole.DRIVER])),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    edge: EdgeFunctionClient = Depends(get_edge_function_client),
):
    """
    Driver quick log.

    Stored as pending_review with minor severity and an unknown
    responsible party until the office reviews it.
    """
    incident = await IncidentService.create_driver_log(
        db, incident_data, current_user["user_id"], datetime.now(timezone.utc)
    )
    return await _finish_create(db, cache, edge, incident, current_user, "driver_log")


@router.post("/{incident_id}/photos", response_model=PhotoUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_incident_photos(
    incident_id: UUID,
    files: List[UploadFile] = File(..., description="Photo files"),
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
):
    """
    Upload photos to an incident.

    Each file is stored independently; files that fail to upload are
    reported back and skipped.
    """
    incident = await _get_incident_or_404(db, incident_id)
    driver_scope.enforce(incident.driver_id, current_user, "incident")

    payloads = []
    for upload in files:
        content = await upload.read()
        if len(content) > MAX_PHOTO_BYTES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{upload.filename} exceeds the {MAX_PHOTO_BYTES // (1024 * 1024)} MB limit"
            )
        payloads.append((upload.filename or "photo.jpg", content, upload.content_type or "image/jpeg"))

    photos, failed = await IncidentService.upload_photos(db, incident, payloads, storage)
    await db.commit()

    if photos:
        await log_event(
            db=db,
            action=AuditAction.INCIDENT_PHOTOS_UPLOADED,
            actor=current_user,
            entity_type="spill_incident",
            entity_id=incident_id,
            metadata={"uploaded": len(photos), "failed": failed}
        )

    return PhotoUploadResponse(
        uploaded=[IncidentPhotoResponse.model_validate(p) for p in photos],
        failed=failed,
    )


@router.get("", response_model=IncidentListResponse)
async def list_incidents(
    status_filter: Optional[IncidentStatus] = Query(None, alias="status"),
    severity: Optional[IncidentSeverity] = Query(None),
    vehicle_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db),
):
    """
    List incidents, newest first.

    Drivers only see incidents they reported.
    """
    incidents, total = await IncidentService.list_incidents(
        db,
        driver_id=driver_scope.filter_driver_id(current_user),
        status=status_filter,
        severity=severity,
        vehicle_id=vehicle_id,
        page=page,
        page_size=page_size,
    )
    return IncidentListResponse(
        items=[IncidentResponse.model_validate(i) for i in incidents],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/summary", response_model=IncidentSummaryResponse)
async def incident_summary(
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """Counts per status and severity."""
    async def load():
        summary = await IncidentService.summary(db)
        return summary.model_dump(mode="json")

    return await cache.get_or_load(CacheKey.INCIDENTS, None, load)


@router.get("/export")
async def export_incidents(
    export_format: str = Query("csv", alias="format", pattern="^(csv|json)$"),
    status_filter: Optional[IncidentStatus] = Query(None, alias="status"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Export incident data as CSV or JSON."""
    incidents, _ = await IncidentService.list_incidents(
        db, status=status_filter, date_from=date_from, date_to=date_to, page_size=None
    )
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")

    if export_format == "json":
        return Response(
            content=json.dumps(IncidentService.export_rows(incidents), default=str),
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="spill-incidents-{stamp}.json"'},
        )

    return Response(
        content=IncidentService.export_csv(incidents),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="spill-incidents-{stamp}.csv"'},
    )


@router.get("/{incident_id}", response_model=IncidentResponse)
async def get_incident(
    incident_id: UUID,
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    """Incident with photos and witnesses. Drivers may only open their own."""
    incident = await _get_incident_or_404(db, incident_id)
    driver_scope.enforce(incident.driver_id, current_user, "incident")
    return IncidentResponse.model_validate(incident)


@router.patch("/{incident_id}/status", response_model=IncidentResponse)
async def update_incident_status(
    incident_id: UUID,
    status_data: IncidentStatusUpdate,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    incident = await _get_incident_or_404(db, incident_id)
    previous = incident.status

    incident.status = status_data.status
    if status_data.regulatory_notification_sent is not None:
        incident.regulatory_notification_sent = status_data.regulatory_notification_sent

    await db.commit()
    await cache.invalidate(CacheKey.INCIDENTS)
    incident = await IncidentService.get_incident(db, incident_id)

    await log_event(
        db=db,
        action=AuditAction.INCIDENT_STATUS_CHANGED,
        actor=current_user,
        entity_type="spill_incident",
        entity_id=incident_id,
        metadata={"from": previous.value, "to": incident.status.value}
    )

    return IncidentResponse.model_validate(incident)


# Decontamination logs

@router.post("/{incident_id}/decon-logs", response_model=DeconLogResponse, status_code=status.HTTP_201_CREATED)
async def create_decon_log(
    incident_id: UUID,
    decon_data: DeconLogCreate,
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db),
    edge: EdgeFunctionClient = Depends(get_edge_function_client),
):
    """
    Record the decontamination sign-off for an incident.

    A failed post-inspection requires at least one photo. Weather is looked
    up from latitude/longitude when conditions are not entered; a failed
    lookup leaves it blank.
    """
    incident = await _get_incident_or_404(db, incident_id)
    driver_scope.enforce(incident.driver_id, current_user, "incident")

    log = await DeconService.create_log(
        db, incident, decon_data, current_user, edge, datetime.now(timezone.utc)
    )
    await db.commit()
    log = await DeconService.get_log(db, incident_id, log.id)

    await log_event(
        db=db,
        action=AuditAction.DECON_LOGGED,
        actor=current_user,
        entity_type="decon_log",
        entity_id=log.id,
        metadata={
            "incident_id": str(incident_id),
            "post_inspection_status": log.post_inspection_status.value if log.post_inspection_status else None,
            "follow_up_required": log.follow_up_required
        }
    )

    return DeconLogResponse.model_validate(log)


@router.get("/{incident_id}/decon-logs", response_model=List[DeconLogResponse])
async def list_decon_logs(
    incident_id: UUID,
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    """Decon logs for an incident, latest sign-off first."""
    incident = await _get_incident_or_404(db, incident_id)
    driver_scope.enforce(incident.driver_id, current_user, "incident")

    logs = await DeconService.list_for_incident(db, incident_id)
    return [DeconLogResponse.model_validate(log) for log in logs]


@router.get("/{incident_id}/decon-logs/{log_id}", response_model=DeconLogResponse)
async def get_decon_log(
    incident_id: UUID,
    log_id: UUID,
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    incident = await _get_incident_or_404(db, incident_id)
    driver_scope.enforce(incident.driver_id, current_user, "incident")

    log = await DeconService.get_log(db, incident_id, log_id)
    if not log:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Decon log not found"
        )
    return DeconLogResponse.model_validate(log)
