"""
Spill incident database models.

An incident report owns its photos and witnesses (one-to-many).
"""

import uuid
from sqlalchemy import Column, String, Float, Boolean, DateTime, Text, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.db.types import db_enum
from backend.app.models.enums import IncidentSeverity, IncidentStatus


class SpillIncidentReport(Base):
    """Spill incident logged by a driver or by the office."""
    __tablename__ = "spill_incident_reports"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    vehicle_id = Column(Uuid, ForeignKey("vehicles.id"), nullable=False, index=True)

    spill_type = Column(String(150), nullable=False)
    location_description = Column(Text, nullable=False)
    cause_description = Column(Text, nullable=False)
    immediate_action_taken = Column(Text, nullable=True)
    incident_date = Column(DateTime(timezone=True), nullable=False, index=True)

    severity = Column(db_enum(IncidentSeverity), default=IncidentSeverity.MINOR, nullable=False)
    status = Column(db_enum(IncidentStatus), default=IncidentStatus.OPEN, nullable=False, index=True)
    responsible_party = Column(String(100), default="unknown", nullable=False)

    volume_estimate = Column(Float, nullable=True)
    volume_unit = Column(String(20), nullable=True)
    weather_conditions = Column(String(255), nullable=True)
    cleanup_actions = Column(JSON, default=list, nullable=False)

    witnesses_present = Column(Boolean, default=False, nullable=False)
    regulatory_notification_required = Column(Boolean, default=False, nullable=False)
    regulatory_notification_sent = Column(Boolean, default=False, nullable=False)
    authorities_notified = Column(Boolean, default=False, nullable=False)

    # Identity provider user id of the reporter
    driver_id = Column(String(100), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    vehicle = relationship("Vehicle", lazy="selectin")
    photos = relationship("IncidentPhoto", back_populates="incident", lazy="selectin", cascade="all, delete-orphan")
    witnesses = relationship("IncidentWitness", back_populates="incident", lazy="selectin", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<SpillIncidentReport(id={self.id}, vehicle={self.vehicle_id}, status='{self.status}')>"


class IncidentPhoto(Base):
    __tablename__ = "incident_photos"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    incident_id = Column(Uuid, ForeignKey("spill_incident_reports.id", ondelete="CASCADE"), nullable=False, index=True)
    photo_url = Column(String(1000), nullable=False)
    photo_type = Column(String(50), default="general", nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    incident = relationship("SpillIncidentReport", back_populates="photos")


class IncidentWitness(Base):
    __tablename__ = "incident_witnesses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    incident_id = Column(Uuid, ForeignKey("spill_incident_reports.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    contact_info = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    incident = relationship("SpillIncidentReport", back_populates="witnesses")
