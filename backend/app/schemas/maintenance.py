"""
Maintenance Pydantic schemas.

Request and response models for maintenance records, the recurring-service
form, catalog rows and the dashboard KPIs.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from typing import Optional, List
from uuid import UUID
from backend.app.models.enums import (
    MaintenanceStatus,
    MaintenancePriority,
    NotificationTriggerType,
    IntervalType,
)


def _normalize_priority(value):
    # The recurring form sends "normal"
    if isinstance(value, str) and value.lower() == "normal":
        return MaintenancePriority.MEDIUM
    return value


class MaintenanceRecordCreate(BaseModel):
    """
    Schema for a one-off maintenance record.

    vehicle_id, scheduled_date and cost are required; they are declared
    optional so a missing value is reported with the form's own message
    instead of a field-level parse error.
    """
    vehicle_id: Optional[UUID] = None
    scheduled_date: Optional[date] = None
    cost: Optional[float] = Field(None, ge=0)

    task_type_id: Optional[UUID] = None
    vendor_id: Optional[UUID] = None
    description: Optional[str] = Field(None, max_length=2000)
    maintenance_type: Optional[str] = Field(None, max_length=150)
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    status: MaintenanceStatus = MaintenanceStatus.SCHEDULED
    parts_cost: Optional[float] = Field(None, ge=0)
    labor_cost: Optional[float] = Field(None, ge=0)
    mileage_at_service: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, value):
        return _normalize_priority(value)


class RecurringServiceCreate(BaseModel):
    """Schema for the recurring-service form."""
    vehicle_id: Optional[UUID] = None
    start_date: Optional[date] = None
    estimated_cost: Optional[float] = Field(None, ge=0)
    interval_type: Optional[IntervalType] = None
    interval_value: Optional[int] = None

    task_type_id: Optional[UUID] = None
    task_type_name: Optional[str] = Field(None, max_length=150)
    vendor_id: Optional[str] = Field(None, description="Vendor UUID, or 'internal' for in-house work")
    description: Optional[str] = Field(None, max_length=2000)
    vehicle_miles: Optional[int] = Field(None, ge=0)
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    notes: Optional[str] = None

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, value):
        return _normalize_priority(value)


class MaintenanceRecordUpdate(BaseModel):
    """Schema for updating a maintenance record (all fields optional)."""
    vehicle_id: Optional[UUID] = None
    task_type_id: Optional[UUID] = None
    vendor_id: Optional[UUID] = None
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    maintenance_type: Optional[str] = Field(None, max_length=150)
    scheduled_date: Optional[date] = None
    completed_date: Optional[date] = None
    status: Optional[MaintenanceStatus] = None
    priority: Optional[MaintenancePriority] = None
    cost: Optional[float] = Field(None, ge=0)
    parts_cost: Optional[float] = Field(None, ge=0)
    labor_cost: Optional[float] = Field(None, ge=0)
    total_cost: Optional[float] = Field(None, ge=0)
    mileage_at_service: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    next_service_date: Optional[date] = None
    next_service_mileage: Optional[int] = Field(None, ge=0)

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, value):
        return _normalize_priority(value)

    @field_validator("vehicle_id", "description", "scheduled_date", "status", "priority")
    @classmethod
    def reject_null(cls, value):
        # Columns behind these fields are NOT NULL; omit a field to leave it unchanged
        if value is None:
            raise ValueError("may not be null")
        return value


class MaintenanceCompleteRequest(BaseModel):
    """Optional completion details."""
    completed_date: Optional[date] = None
    total_cost: Optional[float] = Field(None, ge=0)
    mileage_at_service: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class MaintenanceRecordResponse(BaseModel):
    """Schema for maintenance record response, with joined names."""
    id: UUID
    vehicle_id: UUID
    task_type_id: Optional[UUID]
    vendor_id: Optional[UUID]
    description: str
    maintenance_type: Optional[str]
    scheduled_date: date
    completed_date: Optional[date]
    status: MaintenanceStatus
    priority: MaintenancePriority
    cost: Optional[float]
    parts_cost: Optional[float]
    labor_cost: Optional[float]
    total_cost: Optional[float]
    mileage_at_service: Optional[int]
    notes: Optional[str]
    notification_trigger_type: Optional[NotificationTriggerType]
    next_service_date: Optional[date]
    next_service_mileage: Optional[int]
    created_at: datetime
    updated_at: datetime

    vehicle_name: Optional[str] = None
    license_plate: Optional[str] = None
    task_type_name: Optional[str] = None
    vendor_name: Optional[str] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, record) -> "MaintenanceRecordResponse":
        response = cls.model_validate(record)
        if record.vehicle is not None:
            response.vehicle_name = record.vehicle.display_name
            response.license_plate = record.vehicle.license_plate
        if record.task_type is not None:
            response.task_type_name = record.task_type.name
        if record.vendor is not None:
            response.vendor_name = record.vendor.name
        return response


class MaintenanceRecordListResponse(BaseModel):
    """Schema for paginated maintenance record list."""
    items: List[MaintenanceRecordResponse]
    total: int
    page: int
    page_size: int


class MaintenanceKPIs(BaseModel):
    """Dashboard counters."""
    past_due: int
    due_this_week: int
    due_today: int
    in_progress: int
    ytd_spend: float


class VehicleMaintenanceOverview(BaseModel):
    """Per-vehicle maintenance summary."""
    vehicle_id: UUID
    past_due_count: int
    due_this_week_count: int
    due_today_count: int
    in_progress_count: int
    ytd_cost: float
    past_due: List[MaintenanceRecordResponse]
    due_this_week: List[MaintenanceRecordResponse]
    recent_completed: List[MaintenanceRecordResponse]


class TaskTypeResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str]
    default_interval_days: Optional[int]
    default_interval_miles: Optional[int]
    is_active: bool

    class Config:
        from_attributes = True


class VendorCreate(BaseModel):
    """Schema for creating a vendor."""
    name: str = Field(..., min_length=1, max_length=200)
    contact_name: Optional[str] = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = Field(None, max_length=500)


class VendorResponse(BaseModel):
    id: UUID
    name: str
    contact_name: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    address: Optional[str]
    is_active: bool

    class Config:
        from_attributes = True
