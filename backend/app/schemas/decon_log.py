"""
Decontamination log Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from backend.app.models.enums import DeconLocationType, PostInspectionStatus


class DeconLogCreate(BaseModel):
    """
    Schema for the decon form.

    vehicle_areas and inspector_signature are required; a failed
    post-inspection also needs at least one photo. vehicle_id defaults to
    the incident's vehicle. When weather_conditions is empty and a
    coordinate is sent, current conditions are looked up.
    """
    vehicle_id: Optional[UUID] = None
    vehicle_areas: List[str] = Field(default_factory=list)
    location_type: Optional[DeconLocationType] = None
    weather_conditions: Optional[str] = Field(None, max_length=255)
    weather_details: Optional[str] = Field(None, max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    ppe_items: List[str] = Field(default_factory=list)
    ppe_compliance_status: bool = True
    decon_methods: List[str] = Field(default_factory=list)

    post_inspection_status: Optional[PostInspectionStatus] = None
    inspector_signature: Optional[str] = Field(None, max_length=200)
    follow_up_required: bool = False
    photos: List[str] = Field(default_factory=list)
    notes: Optional[str] = None


class DeconLogResponse(BaseModel):
    id: UUID
    incident_id: UUID
    vehicle_id: UUID
    vehicle_areas: List[str]
    location_type: Optional[DeconLocationType]
    weather_conditions: Optional[str]
    weather_details: Optional[str]
    ppe_items: List[str]
    ppe_compliance_status: bool
    decon_methods: List[str]
    post_inspection_status: Optional[PostInspectionStatus]
    inspector_signature: str
    inspector_clerk_id: Optional[str]
    inspector_role: Optional[str]
    verification_timestamp: datetime
    follow_up_required: bool
    photos: List[str]
    notes: Optional[str]
    performed_by_clerk: str
    created_at: datetime

    class Config:
        from_attributes = True
