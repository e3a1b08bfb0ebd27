"""
Maintenance API Endpoints.

Staff-only management of maintenance records plus the dashboard KPIs and
lists. Every record mutation invalidates the maintenance query caches.
"""

from typing import Optional, List
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.core.guards import require_staff
from backend.app.models.enums import MaintenanceStatus, StatusBucket
from backend.app.models.maintenance import MaintenanceRecord, MaintenanceTaskType, MaintenanceVendor
from backend.app.schemas.maintenance import (
    MaintenanceRecordCreate,
    RecurringServiceCreate,
    MaintenanceRecordUpdate,
    MaintenanceCompleteRequest,
    MaintenanceRecordResponse,
    MaintenanceRecordListResponse,
    MaintenanceKPIs,
    VehicleMaintenanceOverview,
    TaskTypeResponse,
    VendorCreate,
    VendorResponse,
)
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.cache import QueryCache, CacheKey, get_query_cache, invalidate_maintenance
from backend.app.services.maintenance_service import MaintenanceService
from backend.app.services.settings_service import SettingsService

router = APIRouter(prefix="/maintenance", tags=["Maintenance"])


async def _get_record_or_404(db: AsyncSession, record_id: UUID) -> MaintenanceRecord:
    record = await MaintenanceService.get_record(db, record_id)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Maintenance record not found"
        )
    return record


async def _commit_and_reload(db: AsyncSession, cache: QueryCache, record_id: UUID) -> MaintenanceRecord:
    await db.commit()
    await invalidate_maintenance(cache)
    return await MaintenanceService.get_record(db, record_id)


# Catalog

@router.get("/task-types", response_model=List[TaskTypeResponse])
async def list_task_types(
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """Active maintenance task types."""
    result = await db.execute(
        select(MaintenanceTaskType).where(MaintenanceTaskType.is_active == True)
        .order_by(MaintenanceTaskType.name)
    )
    return [TaskTypeResponse.model_validate(t) for t in result.scalars().all()]


@router.get("/vendors", response_model=List[VendorResponse])
async def list_vendors(
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """Active vendors."""
    result = await db.execute(
        select(MaintenanceVendor).where(MaintenanceVendor.is_active == True)
        .order_by(MaintenanceVendor.name)
    )
    return [VendorResponse.model_validate(v) for v in result.scalars().all()]


@router.post("/vendors", response_model=VendorResponse, status_code=status.HTTP_201_CREATED)
async def create_vendor(
    vendor_data: VendorCreate,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    vendor = MaintenanceVendor(**vendor_data.model_dump(), is_active=True)
    db.add(vendor)
    await db.commit()
    await db.refresh(vendor)

    await log_event(
        db=db,
        action=AuditAction.VENDOR_CREATED,
        actor=current_user,
        entity_type="maintenance_vendor",
        entity_id=vendor.id,
        metadata={"name": vendor.name}
    )

    return VendorResponse.model_validate(vendor)


# Records

@router.get("/records", response_model=MaintenanceRecordListResponse)
async def list_records(
    status_filter: Optional[MaintenanceStatus] = Query(None, alias="status", description="Filter by record status"),
    bucket: Optional[StatusBucket] = Query(None, description="scheduled, due_today, overdue or completed"),
    vehicle_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    List maintenance records, newest scheduled date first.

    Bucket filters are evaluated against today in the company timezone.
    """
    today = await SettingsService.get_today(db)
    params = {
        "status": status_filter,
        "bucket": bucket,
        "vehicle_id": vehicle_id,
        "search": search,
        "page": page,
        "page_size": page_size,
        "today": today,
    }

    async def load():
        records, total = await MaintenanceService.list_records(
            db, today, status_filter, bucket, vehicle_id, search, page, page_size
        )
        return MaintenanceRecordListResponse(
            items=[MaintenanceRecordResponse.from_record(r) for r in records],
            total=total,
            page=page,
            page_size=page_size,
        ).model_dump(mode="json")

    return await cache.get_or_load(CacheKey.MAINTENANCE_RECORDS, params, load)


@router.get("/records/export")
async def export_records(
    status_filter: Optional[MaintenanceStatus] = Query(None, alias="status"),
    bucket: Optional[StatusBucket] = Query(None),
    vehicle_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """CSV of the filtered record list (all pages)."""
    today = await SettingsService.get_today(db)
    records, _ = await MaintenanceService.list_records(
        db, today, status_filter, bucket, vehicle_id, search, page=1, page_size=0
    )
    filename = f"maintenance-records-{today.isoformat()}.csv"
    return Response(
        content=MaintenanceService.export_csv(records),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/records", response_model=MaintenanceRecordResponse, status_code=status.HTTP_201_CREATED)
async def create_record(
    record_data: MaintenanceRecordCreate,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Create a one-off maintenance record.

    vehicle_id, scheduled_date and cost are required; nothing is written
    when one is missing.
    """
    record = await MaintenanceService.create_record(db, record_data)
    record = await _commit_and_reload(db, cache, record.id)

    await log_event(
        db=db,
        action=AuditAction.MAINTENANCE_CREATED,
        actor=current_user,
        entity_type="maintenance_record",
        entity_id=record.id,
        metadata={
            "vehicle_id": str(record.vehicle_id),
            "scheduled_date": record.scheduled_date.isoformat(),
            "cost": record.cost
        }
    )

    return MaintenanceRecordResponse.from_record(record)


@router.post("/records/recurring", response_model=MaintenanceRecordResponse, status_code=status.HTTP_201_CREATED)
async def create_recurring_service(
    service_data: RecurringServiceCreate,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Schedule a recurring service.

    The next service date (day/week/month intervals, months as 30 days) or
    next service mileage (mile intervals) is computed from the start date
    and interval.
    """
    record = await MaintenanceService.create_recurring(db, service_data)
    record = await _commit_and_reload(db, cache, record.id)

    await log_event(
        db=db,
        action=AuditAction.RECURRING_SERVICE_CREATED,
        actor=current_user,
        entity_type="maintenance_record",
        entity_id=record.id,
        metadata={
            "vehicle_id": str(record.vehicle_id),
            "interval_type": service_data.interval_type.value,
            "interval_value": service_data.interval_value,
            "next_service_date": record.next_service_date.isoformat() if record.next_service_date else None,
            "next_service_mileage": record.next_service_mileage
        }
    )

    return MaintenanceRecordResponse.from_record(record)


@router.get("/records/{record_id}", response_model=MaintenanceRecordResponse)
async def get_record(
    record_id: UUID,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    record = await _get_record_or_404(db, record_id)
    return MaintenanceRecordResponse.from_record(record)


@router.patch("/records/{record_id}", response_model=MaintenanceRecordResponse)
async def update_record(
    record_id: UUID,
    record_data: MaintenanceRecordUpdate,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """Update a maintenance record (last write wins)."""
    record = await _get_record_or_404(db, record_id)
    updated_fields = await MaintenanceService.apply_update(
        db, record, record_data, await SettingsService.get_today(db)
    )
    record = await _commit_and_reload(db, cache, record_id)

    await log_event(
        db=db,
        action=AuditAction.MAINTENANCE_UPDATED,
        actor=current_user,
        entity_type="maintenance_record",
        entity_id=record.id,
        metadata={"updated_fields": updated_fields}
    )

    return MaintenanceRecordResponse.from_record(record)


@router.post("/records/{record_id}/complete", response_model=MaintenanceRecordResponse)
async def complete_record(
    record_id: UUID,
    completion: Optional[MaintenanceCompleteRequest] = None,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """Mark a record completed (completed_date defaults to today)."""
    record = await _get_record_or_404(db, record_id)
    MaintenanceService.complete(record, completion or MaintenanceCompleteRequest(), await SettingsService.get_today(db))
    record = await _commit_and_reload(db, cache, record_id)

    await log_event(
        db=db,
        action=AuditAction.MAINTENANCE_COMPLETED,
        actor=current_user,
        entity_type="maintenance_record",
        entity_id=record.id,
        metadata={"completed_date": record.completed_date.isoformat()}
    )

    return MaintenanceRecordResponse.from_record(record)


@router.post("/records/{record_id}/reopen", response_model=MaintenanceRecordResponse)
async def reopen_record(
    record_id: UUID,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """Mark a completed record as not completed."""
    record = await _get_record_or_404(db, record_id)
    MaintenanceService.reopen(record)
    record = await _commit_and_reload(db, cache, record_id)

    await log_event(
        db=db,
        action=AuditAction.MAINTENANCE_REOPENED,
        actor=current_user,
        entity_type="maintenance_record",
        entity_id=record.id
    )

    return MaintenanceRecordResponse.from_record(record)


@router.delete("/records/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(
    record_id: UUID,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    record = await _get_record_or_404(db, record_id)
    metadata = {
        "vehicle_id": str(record.vehicle_id),
        "description": record.description,
        "scheduled_date": record.scheduled_date.isoformat()
    }

    await db.delete(record)
    await db.commit()
    await invalidate_maintenance(cache)

    await log_event(
        db=db,
        action=AuditAction.MAINTENANCE_DELETED,
        actor=current_user,
        entity_type="maintenance_record",
        entity_id=record_id,
        metadata=metadata
    )

    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Dashboards

@router.get("/kpis", response_model=MaintenanceKPIs)
async def get_kpis(
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """Past due, due this week, due today, in progress and year-to-date spend."""
    today = await SettingsService.get_today(db)

    async def load():
        kpis = await MaintenanceService.get_kpis(db, today)
        return kpis.model_dump(mode="json")

    return await cache.get_or_load(CacheKey.MAINTENANCE_KPIS, {"today": today}, load)


@router.get("/overdue", response_model=List[MaintenanceRecordResponse])
async def list_overdue(
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """Oldest open records scheduled before today."""
    today = await SettingsService.get_today(db)

    async def load():
        records = await MaintenanceService.list_overdue(db, today)
        return [MaintenanceRecordResponse.from_record(r).model_dump(mode="json") for r in records]

    return await cache.get_or_load(CacheKey.OVERDUE_MAINTENANCE, {"today": today}, load)


@router.get("/upcoming", response_model=List[MaintenanceRecordResponse])
async def list_upcoming(
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """Scheduled records due within the next week."""
    today = await SettingsService.get_today(db)

    async def load():
        records = await MaintenanceService.list_upcoming(db, today)
        return [MaintenanceRecordResponse.from_record(r).model_dump(mode="json") for r in records]

    return await cache.get_or_load(CacheKey.UPCOMING_MAINTENANCE, {"today": today}, load)


@router.get("/vehicles/{vehicle_id}/overview", response_model=VehicleMaintenanceOverview)
async def vehicle_overview(
    vehicle_id: UUID,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    today = await SettingsService.get_today(db)
    return await MaintenanceService.vehicle_overview(db, vehicle_id, today)
