"""
Decontamination log model.

Closes out a spill incident: which parts of the vehicle were cleaned, the
PPE worn, the methods used and the inspector's sign-off.
"""

import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Text, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.db.types import db_enum
from backend.app.models.enums import DeconLocationType, PostInspectionStatus


class DeconLog(Base):
    __tablename__ = "decon_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    incident_id = Column(Uuid, ForeignKey("spill_incident_reports.id", ondelete="CASCADE"), nullable=False, index=True)
    vehicle_id = Column(Uuid, ForeignKey("vehicles.id"), nullable=False, index=True)

    vehicle_areas = Column(JSON, default=list, nullable=False)  # e.g. ["tank exterior", "hoses"]
    location_type = Column(db_enum(DeconLocationType), nullable=True)
    weather_conditions = Column(String(255), nullable=True)
    weather_details = Column(String(500), nullable=True)

    ppe_items = Column(JSON, default=list, nullable=False)
    ppe_compliance_status = Column(Boolean, default=True, nullable=False)
    decon_methods = Column(JSON, default=list, nullable=False)

    post_inspection_status = Column(db_enum(PostInspectionStatus), nullable=True)
    inspector_signature = Column(String(200), nullable=False)
    inspector_clerk_id = Column(String(100), nullable=True)
    inspector_role = Column(String(32), nullable=True)
    verification_timestamp = Column(DateTime(timezone=True), nullable=False)
    follow_up_required = Column(Boolean, default=False, nullable=False)

    photos = Column(JSON, default=list, nullable=False)
    notes = Column(Text, nullable=True)
    performed_by_clerk = Column(String(100), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    vehicle = relationship("Vehicle", lazy="selectin")

    def __repr__(self):
        return f"<DeconLog(id={self.id}, incident={self.incident_id}, status='{self.post_inspection_status}')>"
