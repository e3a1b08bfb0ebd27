"""
Spill kit Pydantic schemas.

Templates, inspection checks, expiration reports and restock requests.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from typing import Optional, List, Dict
from uuid import UUID
from backend.app.models.enums import (
    ItemConditionStatus,
    KitCompletionStatus,
    ExpirationStatus,
    RestockStatus,
)


class TemplateItemResponse(BaseModel):
    id: UUID
    item_name: str
    required_quantity: int
    critical_item: bool
    category: str
    expiration_trackable: bool

    class Config:
        from_attributes = True


class TemplateResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str]
    vehicle_types: List[str]
    is_default: bool
    is_active: bool
    items: List[TemplateItemResponse] = []

    class Config:
        from_attributes = True


class ItemCondition(BaseModel):
    """Inspection result for one template item."""
    status: ItemConditionStatus = ItemConditionStatus.PRESENT
    actual_quantity: Optional[int] = Field(None, ge=0)
    expiration_date: Optional[date] = None
    notes: Optional[str] = None


class SpillKitCheckCreate(BaseModel):
    """
    Schema for a spill kit inspection.

    item_conditions is keyed by template item id. Items left out are
    counted as present.
    """
    vehicle_id: Optional[UUID] = None
    template_id: Optional[UUID] = None
    item_conditions: Dict[str, ItemCondition] = Field(default_factory=dict)
    photos: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    weather_conditions: Optional[str] = Field(None, max_length=255)
    inspection_duration_minutes: Optional[int] = Field(None, ge=0)
    generate_restock_request: bool = True


class MissingItem(BaseModel):
    name: str
    quantity: int


class SpillKitCheckResponse(BaseModel):
    id: UUID
    vehicle_id: UUID
    template_id: Optional[UUID]
    has_kit: bool
    item_conditions: Dict[str, Dict]
    missing_items: List[MissingItem]
    photos: List[str]
    notes: Optional[str]
    weather_conditions: Optional[str]
    inspection_duration_minutes: Optional[int]
    completion_status: KitCompletionStatus
    next_check_due: date
    checked_at: datetime
    checked_by_clerk: Optional[str]

    restock_request_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class SpillKitCheckListResponse(BaseModel):
    items: List[SpillKitCheckResponse]
    total: int
    page: int
    page_size: int


class ExpirationEntry(BaseModel):
    """Latest recorded expiration for one item on one vehicle."""
    vehicle_id: UUID
    license_plate: Optional[str]
    item_id: str
    item_name: str
    item_category: Optional[str]
    expiration_date: date
    days_until_expiration: int
    status: ExpirationStatus
    checked_at: datetime


class ExpirationReport(BaseModel):
    items: List[ExpirationEntry]
    expired_count: int
    expiring_soon_count: int


class RestockRequestUpdate(BaseModel):
    status: Optional[RestockStatus] = None
    assigned_to: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def reject_null_status(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class RestockRequestResponse(BaseModel):
    id: UUID
    vehicle_id: UUID
    template_id: Optional[UUID]
    check_id: Optional[UUID]
    missing_items: List[MissingItem]
    status: RestockStatus
    priority: str
    assigned_to: Optional[str]
    notes: Optional[str]
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WeatherResponse(BaseModel):
    """Current conditions from the weather function."""
    description: Optional[str] = None
    temp: Optional[float] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    city: Optional[str] = None
    state: Optional[str] = None
    summary: str
