"""
Company Settings API Endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.core.guards import require_staff, require_any_role
from backend.app.domain.maintenance.status_buckets import resolve_timezone
from backend.app.schemas.settings import (
    CompanySettingsUpdate,
    CompanySettingsResponse,
    MaintenanceSettingsUpdate,
    MaintenanceSettingsResponse,
)
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.cache import QueryCache, get_query_cache, invalidate_maintenance
from backend.app.services.settings_service import SettingsService

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("/company", response_model=CompanySettingsResponse)
async def get_company_settings(
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    """
    Company settings.

    effective_timezone is the zone used for "today" in maintenance views:
    the configured one, or the default when unset or unknown.
    """
    row = await SettingsService.get_company_settings(db)
    return CompanySettingsResponse(
        company_name=row.company_name if row else None,
        company_timezone=row.company_timezone if row else None,
        effective_timezone=resolve_timezone(row.company_timezone if row else None).key,
    )


@router.put("/company", response_model=CompanySettingsResponse)
async def update_company_settings(
    settings_data: CompanySettingsUpdate,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    row = await SettingsService.get_or_create_company_settings(db)
    previous_timezone = row.company_timezone

    update_data = settings_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(row, field, value)

    await db.commit()

    # Cached maintenance views are keyed on the company-local date
    if row.company_timezone != previous_timezone:
        await invalidate_maintenance(cache)

    await log_event(
        db=db,
        action=AuditAction.SETTINGS_UPDATED,
        actor=current_user,
        entity_type="company_settings",
        entity_id=row.id,
        metadata={"changed_fields": list(update_data.keys())}
    )

    return CompanySettingsResponse(
        company_name=row.company_name,
        company_timezone=row.company_timezone,
        effective_timezone=resolve_timezone(row.company_timezone).key,
    )


@router.get("/maintenance", response_model=MaintenanceSettingsResponse)
async def get_maintenance_settings(
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    row = await SettingsService.get_maintenance_settings(db)
    if row is None:
        return MaintenanceSettingsResponse(
            enable_inhouse_features=False,
            default_reminder_days=7,
            default_reminder_miles=500,
        )
    return MaintenanceSettingsResponse.model_validate(row)


@router.put("/maintenance", response_model=MaintenanceSettingsResponse)
async def update_maintenance_settings(
    settings_data: MaintenanceSettingsUpdate,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    row = await SettingsService.get_or_create_maintenance_settings(db)

    update_data = settings_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(row, field, value)

    await db.commit()

    await log_event(
        db=db,
        action=AuditAction.SETTINGS_UPDATED,
        actor=current_user,
        entity_type="company_maintenance_settings",
        entity_id=row.id,
        metadata={"changed_fields": list(update_data.keys())}
    )

    return MaintenanceSettingsResponse(
        enable_inhouse_features=row.enable_inhouse_features,
        default_reminder_days=row.default_reminder_days,
        default_reminder_miles=row.default_reminder_miles,
    )
