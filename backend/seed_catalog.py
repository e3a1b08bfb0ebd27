"""
Database seeding script for catalog data.

Creates the maintenance task types, the default spill kit template and the
company settings rows for development and first deployments.
Run this script after database is set up but before first use.
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.core.config import settings
from backend.app.core.observability import configure_logging
from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.company_settings import CompanySettings, CompanyMaintenanceSettings
from backend.app.models.maintenance import MaintenanceTaskType
from backend.app.models.spill_kit import SpillKitTemplate, SpillKitTemplateItem

logger = logging.getLogger("fleet_compliance.seed")

# (name, default_interval_days, default_interval_miles)
TASK_TYPES = [
    ("Oil Change", 90, 5000),
    ("Tire Rotation", 180, 7500),
    ("Brake Inspection", 180, None),
    ("DOT Annual Inspection", 365, None),
    ("Pump Service", 90, None),
    ("Hose Replacement", 365, None),
    ("Transmission Service", None, 30000),
]

# (item_name, required_quantity, critical_item, category, expiration_trackable)
DEFAULT_KIT_ITEMS = [
    ("Absorbent pads", 20, True, "absorbent", False),
    ("Absorbent socks", 4, True, "absorbent", False),
    ("Granular absorbent (bag)", 1, False, "absorbent", True),
    ("Drain cover", 1, True, "containment", False),
    ("Disposal bags", 5, False, "disposal", False),
    ("Nitrile gloves (pair)", 4, False, "ppe", True),
    ("Safety goggles", 1, False, "ppe", False),
    ("Instruction card", 1, False, "general", False),
]


async def seed_catalog(db: AsyncSession) -> dict:
    """
    Insert catalog rows that are missing. Safe to run repeatedly.

    Returns:
        Number of rows created per table
    """
    created = {"task_types": 0, "spill_kit_templates": 0, "settings": 0}

    existing = set((await db.execute(select(MaintenanceTaskType.name))).scalars().all())
    for name, days, miles in TASK_TYPES:
        if name in existing:
            continue
        db.add(MaintenanceTaskType(
            name=name,
            default_interval_days=days,
            default_interval_miles=miles,
            is_active=True,
        ))
        created["task_types"] += 1

    default_template = (await db.execute(
        select(SpillKitTemplate).where(SpillKitTemplate.is_default == True)
    )).scalars().first()
    if default_template is None:
        template = SpillKitTemplate(
            name="Standard Vehicle Spill Kit",
            description="Baseline kit carried on every service vehicle",
            vehicle_types=["truck", "pump_truck", "vacuum_truck", "van"],
            is_default=True,
            is_active=True,
        )
        template.items = [
            SpillKitTemplateItem(
                item_name=item_name,
                required_quantity=quantity,
                critical_item=critical,
                category=category,
                expiration_trackable=trackable,
                display_order=order,
            )
            for order, (item_name, quantity, critical, category, trackable) in enumerate(DEFAULT_KIT_ITEMS, start=1)
        ]
        db.add(template)
        created["spill_kit_templates"] += 1

    if (await db.execute(select(CompanySettings.id))).first() is None:
        db.add(CompanySettings(company_timezone=settings.default_company_timezone))
        created["settings"] += 1
    if (await db.execute(select(CompanyMaintenanceSettings.id))).first() is None:
        db.add(CompanyMaintenanceSettings(
            enable_inhouse_features=False,
            default_reminder_days=7,
            default_reminder_miles=500,
        ))
        created["settings"] += 1

    await db.commit()
    return created


async def main():
    configure_logging(settings.log_level)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        created = await seed_catalog(db)

    logger.info(
        "Seeded %d task types, %d spill kit templates, %d settings rows",
        created["task_types"], created["spill_kit_templates"], created["settings"],
    )
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
