"""
Company settings lookups.

Both settings tables hold at most one row; a missing row reads as defaults.
"""

from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.domain.maintenance.status_buckets import company_today, resolve_timezone
from backend.app.models.company_settings import CompanySettings, CompanyMaintenanceSettings


class SettingsService:

    @staticmethod
    async def get_company_settings(db: AsyncSession) -> Optional[CompanySettings]:
        result = await db.execute(select(CompanySettings).order_by(CompanySettings.id).limit(1))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_or_create_company_settings(db: AsyncSession) -> CompanySettings:
        row = await SettingsService.get_company_settings(db)
        if row is None:
            row = CompanySettings()
            db.add(row)
            await db.flush()
        return row

    @staticmethod
    async def get_company_timezone(db: AsyncSession) -> str:
        """Configured company timezone, or the default when unset or unknown."""
        row = await SettingsService.get_company_settings(db)
        return resolve_timezone(row.company_timezone if row else None).key

    @staticmethod
    async def get_today(db: AsyncSession):
        """Today's date in the company timezone."""
        return company_today(await SettingsService.get_company_timezone(db))

    @staticmethod
    async def get_maintenance_settings(db: AsyncSession) -> Optional[CompanyMaintenanceSettings]:
        result = await db.execute(
            select(CompanyMaintenanceSettings).order_by(CompanyMaintenanceSettings.id).limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_or_create_maintenance_settings(db: AsyncSession) -> CompanyMaintenanceSettings:
        row = await SettingsService.get_maintenance_settings(db)
        if row is None:
            row = CompanyMaintenanceSettings(
                enable_inhouse_features=False,
                default_reminder_days=7,
                default_reminder_miles=500,
            )
            db.add(row)
            await db.flush()
        return row
