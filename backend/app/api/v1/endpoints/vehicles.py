"""
Vehicle API Endpoints.

Read-only vehicle lookups used by the maintenance and compliance forms.
"""

from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.core.guards import require_any_role
from backend.app.models.enums import VehicleStatus
from backend.app.schemas.vehicle import VehicleResponse, VehicleListResponse
from backend.app.services.storage import StorageClient, get_storage_client
from backend.app.services.vehicle_service import VehicleService

router = APIRouter(prefix="/vehicles", tags=["Vehicles"])


@router.get("", response_model=VehicleListResponse)
async def list_vehicles(
    status: Optional[VehicleStatus] = Query(None, description="Filter by status (default: all)"),
    search: Optional[str] = Query(None, max_length=100, description="Plate, type, make, model or nickname"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
):
    """List vehicles with their resolved image URLs."""
    vehicles, total = await VehicleService.list_vehicles(db, status, search, page, page_size)
    return VehicleListResponse(
        items=[VehicleService.to_response(v, storage) for v in vehicles],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: UUID,
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
):
    vehicle = await VehicleService.get_vehicle(db, vehicle_id)
    return VehicleService.to_response(vehicle, storage)
