"""
Spill incident Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict
from uuid import UUID
from backend.app.models.enums import IncidentSeverity, IncidentStatus

AUTHORITIES_NOTIFIED_ACTION = "Authorities notified"

CLEANUP_ACTION_OPTIONS = [
    "Absorbent material applied",
    "Area vacuumed/pumped",
    AUTHORITIES_NOTIFIED_ACTION,
    "Area cordoned off",
    "Soil sampling performed",
    "Water sampling performed",
    "Environmental contractor called",
    "Customer notified",
    "Spill kit deployed",
]


class WitnessCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    contact_info: Optional[str] = Field(None, max_length=255)


class IncidentCreate(BaseModel):
    """
    Schema for the office incident form.

    vehicle_id, spill_type, location_description and cause_description are
    required and checked by the service.
    """
    vehicle_id: Optional[UUID] = None
    spill_type: Optional[str] = Field(None, max_length=150)
    location_description: Optional[str] = None
    cause_description: Optional[str] = None

    immediate_action_taken: Optional[str] = None
    incident_date: Optional[datetime] = None
    severity: IncidentSeverity = IncidentSeverity.MINOR
    responsible_party: str = Field("unknown", max_length=100)
    volume_estimate: Optional[float] = Field(None, ge=0)
    volume_unit: Optional[str] = Field("gallons", max_length=20)
    weather_conditions: Optional[str] = Field(None, max_length=255)
    cleanup_actions: List[str] = Field(default_factory=list)
    regulatory_notification_required: bool = False
    witnesses: List[WitnessCreate] = Field(default_factory=list)
    photo_urls: List[str] = Field(default_factory=list)


class DriverIncidentCreate(BaseModel):
    """Schema for the driver quick log; the remaining fields are filled in by the server."""
    vehicle_id: Optional[UUID] = None
    spill_type: Optional[str] = Field(None, max_length=150)
    location_description: Optional[str] = None
    cause_description: Optional[str] = None
    immediate_action_taken: Optional[str] = None
    incident_date: Optional[datetime] = None


class IncidentStatusUpdate(BaseModel):
    status: IncidentStatus
    regulatory_notification_sent: Optional[bool] = None


class IncidentPhotoResponse(BaseModel):
    id: UUID
    photo_url: str
    photo_type: str

    class Config:
        from_attributes = True


class IncidentWitnessResponse(BaseModel):
    id: UUID
    name: str
    contact_info: Optional[str]

    class Config:
        from_attributes = True


class IncidentResponse(BaseModel):
    """Schema for incident response, including photos and witnesses."""
    id: UUID
    vehicle_id: UUID
    spill_type: str
    location_description: str
    cause_description: str
    immediate_action_taken: Optional[str]
    incident_date: datetime
    severity: IncidentSeverity
    status: IncidentStatus
    responsible_party: str
    volume_estimate: Optional[float]
    volume_unit: Optional[str]
    weather_conditions: Optional[str]
    cleanup_actions: List[str]
    witnesses_present: bool
    regulatory_notification_required: bool
    regulatory_notification_sent: bool
    authorities_notified: bool
    driver_id: str
    created_at: datetime
    updated_at: datetime

    photos: List[IncidentPhotoResponse] = []
    witnesses: List[IncidentWitnessResponse] = []

    class Config:
        from_attributes = True


class IncidentListResponse(BaseModel):
    """Schema for paginated incident list."""
    items: List[IncidentResponse]
    total: int
    page: int
    page_size: int


class PhotoUploadResponse(BaseModel):
    """Outcome of a multipart photo upload; failed files are skipped."""
    uploaded: List[IncidentPhotoResponse]
    failed: List[str]


class IncidentSummaryResponse(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_severity: Dict[str, int]
    regulatory_pending: int
