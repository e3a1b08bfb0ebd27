"""
Vehicle Pydantic schemas.

Vehicles are read-only in this service.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from backend.app.models.enums import VehicleStatus


class VehicleResponse(BaseModel):
    """Schema for vehicle response."""
    id: UUID
    license_plate: str
    make: Optional[str]
    model: Optional[str]
    year: Optional[int]
    nickname: Optional[str]
    vehicle_type: Optional[str]
    status: VehicleStatus
    current_mileage: Optional[int]
    vehicle_image: Optional[str]
    display_name: str
    image_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class VehicleListResponse(BaseModel):
    """Schema for paginated vehicle list."""
    items: List[VehicleResponse]
    total: int
    page: int
    page_size: int
