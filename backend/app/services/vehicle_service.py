"""
Vehicle lookups.
"""

from typing import Optional, List, Tuple
from uuid import UUID
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.core.config import settings
from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.models.enums import VehicleStatus
from backend.app.models.vehicle import Vehicle
from backend.app.schemas.vehicle import VehicleResponse
from backend.app.services.storage import StorageClient


class VehicleService:

    @staticmethod
    async def get_vehicle(db: AsyncSession, vehicle_id: UUID) -> Vehicle:
        """
        Raises:
            ResourceNotFoundError: If the vehicle does not exist
        """
        vehicle = await db.get(Vehicle, vehicle_id)
        if vehicle is None:
            raise ResourceNotFoundError("Vehicle", str(vehicle_id))
        return vehicle

    @staticmethod
    async def list_vehicles(
        db: AsyncSession,
        status: Optional[VehicleStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[Vehicle], int]:
        filters = []
        if status:
            filters.append(Vehicle.status == status)
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(
                Vehicle.license_plate.ilike(pattern),
                Vehicle.vehicle_type.ilike(pattern),
                Vehicle.make.ilike(pattern),
                Vehicle.model.ilike(pattern),
                Vehicle.nickname.ilike(pattern),
            ))

        total = (await db.execute(select(func.count(Vehicle.id)).where(*filters))).scalar() or 0

        query = select(Vehicle).where(*filters).order_by(Vehicle.license_plate)
        query = query.offset((page - 1) * page_size).limit(page_size)
        vehicles = (await db.execute(query)).scalars().all()
        return vehicles, total

    @staticmethod
    def to_response(vehicle: Vehicle, storage: StorageClient) -> VehicleResponse:
        response = VehicleResponse.model_validate(vehicle)
        response.image_url = storage.public_url(settings.vehicle_images_bucket, vehicle.vehicle_image)
        return response
