"""
Vehicle database model.

Vehicles are created and edited elsewhere in the product; this module reads
them and filters by status.
"""

import uuid
from sqlalchemy import Column, Integer, String, DateTime, Uuid
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.db.types import db_enum
from backend.app.models.enums import VehicleStatus


class Vehicle(Base):
    """Fleet vehicle."""
    __tablename__ = "vehicles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Identification
    license_plate = Column(String(50), nullable=False, index=True)
    make = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    year = Column(Integer, nullable=True)
    nickname = Column(String(100), nullable=True)
    vehicle_type = Column(String(100), nullable=True)  # e.g., "truck", "van", "pump_truck"

    status = Column(db_enum(VehicleStatus), default=VehicleStatus.ACTIVE, nullable=False, index=True)
    current_mileage = Column(Integer, nullable=True)

    # Storage path inside the vehicle-images bucket, or an absolute URL
    vehicle_image = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def display_name(self) -> str:
        if self.make and self.model:
            name = f"{self.make} {self.model}"
            return f"{name} - {self.nickname}" if self.nickname else name
        return self.vehicle_type or "Unknown"

    def __repr__(self):
        return f"<Vehicle(id={self.id}, plate='{self.license_plate}', status='{self.status}')>"
