"""
Spill Kit API Endpoints.

Drivers and staff record spill kit inspections; staff manage restock
requests and review the expiration report.
"""

from datetime import datetime, timezone
from typing import Optional, List
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.core.guards import require_staff, require_any_role
from backend.app.models.enums import KitCompletionStatus, RestockStatus
from backend.app.models.spill_kit import VehicleSpillKitCheck
from backend.app.schemas.spill_kit import (
    TemplateResponse,
    SpillKitCheckCreate,
    SpillKitCheckResponse,
    SpillKitCheckListResponse,
    ExpirationReport,
    RestockRequestUpdate,
    RestockRequestResponse,
    WeatherResponse,
)
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.cache import QueryCache, CacheKey, get_query_cache
from backend.app.services.edge_functions import EdgeFunctionClient, get_edge_function_client
from backend.app.services.settings_service import SettingsService
from backend.app.services.spill_kit_service import SpillKitService

router = APIRouter(prefix="/spill-kits", tags=["Spill Kits"])


async def _get_check_or_404(db: AsyncSession, check_id: UUID) -> VehicleSpillKitCheck:
    check = await SpillKitService.get_check(db, check_id)
    if not check:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Spill kit check not found"
        )
    return check


# Templates

@router.get("/templates", response_model=List[TemplateResponse])
async def list_templates(
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """Active templates with their items, default template first."""
    async def load():
        templates = await SpillKitService.list_templates(db)
        return [TemplateResponse.model_validate(t).model_dump(mode="json") for t in templates]

    return await cache.get_or_load(CacheKey.SPILL_KIT_TEMPLATES, None, load)


@router.get("/templates/for-vehicle/{vehicle_id}", response_model=TemplateResponse)
async def template_for_vehicle(
    vehicle_id: UUID,
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    """Template matching the vehicle's type, falling back to the default template."""
    template = await SpillKitService.template_for_vehicle(db, vehicle_id)
    if template is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No spill kit template configured"
        )
    return TemplateResponse.model_validate(template)


# Checks

@router.post("/checks", response_model=SpillKitCheckResponse, status_code=status.HTTP_201_CREATED)
async def record_check(
    check_data: SpillKitCheckCreate,
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Record a spill kit inspection.

    The kit status is computed from the item conditions. Missing items
    raise a restock request unless generate_restock_request is false.
    """
    today = await SettingsService.get_today(db)
    check, restock = await SpillKitService.record_check(
        db, check_data, current_user["user_id"], datetime.now(timezone.utc), today
    )
    await db.commit()
    await cache.invalidate(CacheKey.SPILL_KITS_STATUS)

    await log_event(
        db=db,
        action=AuditAction.SPILL_KIT_CHECK_RECORDED,
        actor=current_user,
        entity_type="spill_kit_check",
        entity_id=check.id,
        metadata={
            "vehicle_id": str(check.vehicle_id),
            "completion_status": check.completion_status.value,
            "missing": len(check.missing_items)
        }
    )
    if restock is not None:
        await log_event(
            db=db,
            action=AuditAction.RESTOCK_REQUESTED,
            actor=current_user,
            entity_type="spill_kit_restock_request",
            entity_id=restock.id,
            metadata={"check_id": str(check.id), "items": len(restock.missing_items)}
        )

    response = SpillKitCheckResponse.model_validate(check)
    response.restock_request_id = restock.id if restock else None
    return response


@router.get("/checks", response_model=SpillKitCheckListResponse)
async def list_checks(
    vehicle_id: Optional[UUID] = Query(None),
    completion_status: Optional[KitCompletionStatus] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """Inspections, most recent first."""
    async def load():
        checks, total = await SpillKitService.list_checks(db, vehicle_id, completion_status, page, page_size)
        return SpillKitCheckListResponse(
            items=[SpillKitCheckResponse.model_validate(c) for c in checks],
            total=total,
            page=page,
            page_size=page_size,
        ).model_dump(mode="json")

    params = {
        "vehicle_id": vehicle_id,
        "completion_status": completion_status,
        "page": page,
        "page_size": page_size,
    }
    return await cache.get_or_load(CacheKey.SPILL_KITS_STATUS, params, load)


@router.get("/checks/{check_id}", response_model=SpillKitCheckResponse)
async def get_check(
    check_id: UUID,
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    check = await _get_check_or_404(db, check_id)
    return SpillKitCheckResponse.model_validate(check)


@router.delete("/checks/{check_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_check(
    check_id: UUID,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    """Soft delete; the check disappears from lists and the expiration report."""
    check = await _get_check_or_404(db, check_id)
    check.deleted_at = datetime.now(timezone.utc)
    await db.commit()
    await cache.invalidate(CacheKey.SPILL_KITS_STATUS)

    await log_event(
        db=db,
        action=AuditAction.SPILL_KIT_CHECK_DELETED,
        actor=current_user,
        entity_type="spill_kit_check",
        entity_id=check_id,
        metadata={"vehicle_id": str(check.vehicle_id)}
    )


@router.get("/expirations", response_model=ExpirationReport)
async def expiration_report(
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """Latest recorded expiration per vehicle and item, soonest first."""
    today = await SettingsService.get_today(db)
    return await SpillKitService.expiration_report(db, today)


# Restock requests

@router.get("/restock-requests", response_model=List[RestockRequestResponse])
async def list_restock_requests(
    status_filter: Optional[RestockStatus] = Query(None, alias="status"),
    vehicle_id: Optional[UUID] = Query(None),
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    requests = await SpillKitService.list_restock_requests(db, status_filter, vehicle_id)
    return [RestockRequestResponse.model_validate(r) for r in requests]


@router.patch("/restock-requests/{request_id}", response_model=RestockRequestResponse)
async def update_restock_request(
    request_id: UUID,
    update_data: RestockRequestUpdate,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Assign, annotate or close a restock request.

    Assigning a pending request starts it; completing it stamps completed_at.
    """
    restock = await SpillKitService.get_restock_request(db, request_id)
    if not restock:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Restock request not found"
        )

    changed = SpillKitService.apply_restock_update(restock, update_data, datetime.now(timezone.utc))
    await db.commit()
    restock = await SpillKitService.get_restock_request(db, request_id)

    await log_event(
        db=db,
        action=AuditAction.RESTOCK_UPDATED,
        actor=current_user,
        entity_type="spill_kit_restock_request",
        entity_id=request_id,
        metadata={"changed_fields": changed, "status": restock.status.value}
    )

    return RestockRequestResponse.model_validate(restock)


@router.get("/weather", response_model=WeatherResponse)
async def current_weather(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    current_user: dict = Depends(require_any_role),
    edge: EdgeFunctionClient = Depends(get_edge_function_client),
):
    """Current conditions for the inspection form."""
    return await edge.get_current_weather(latitude, longitude)
