"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import (
    vehicles, maintenance,
    spill_incidents, spill_kits,
    settings, offline_sync
)

router = APIRouter()

# Fleet lookups
router.include_router(vehicles.router)

# Maintenance records, KPIs and dashboard lists
router.include_router(maintenance.router)

# Environmental compliance
router.include_router(spill_incidents.router)
router.include_router(spill_kits.router)

# Company settings
router.include_router(settings.router)

# Offline submission queue
router.include_router(offline_sync.router)
