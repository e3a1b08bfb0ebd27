"""
Maintenance database models.

Task types and vendors are catalog rows; maintenance records are the
scheduled and completed service events for each vehicle.
"""

import uuid
from sqlalchemy import Column, Integer, String, Float, Boolean, Date, DateTime, Text, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.db.types import db_enum
from backend.app.models.enums import MaintenanceStatus, MaintenancePriority, NotificationTriggerType


class MaintenanceTaskType(Base):
    """Catalog of service tasks (oil change, brake inspection, ...)."""
    __tablename__ = "maintenance_task_types"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(150), nullable=False, index=True)
    description = Column(Text, nullable=True)
    default_interval_days = Column(Integer, nullable=True)
    default_interval_miles = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<MaintenanceTaskType(id={self.id}, name='{self.name}')>"


class MaintenanceVendor(Base):
    """Outside shop performing maintenance."""
    __tablename__ = "maintenance_vendors"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False, index=True)
    contact_name = Column(String(150), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<MaintenanceVendor(id={self.id}, name='{self.name}')>"


class MaintenanceRecord(Base):
    """
    A scheduled or completed maintenance event for a vehicle.

    Recurring services carry a computed next_service_date (date based) or
    next_service_mileage (mileage based).
    """
    __tablename__ = "maintenance_records"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    vehicle_id = Column(Uuid, ForeignKey("vehicles.id"), nullable=False, index=True)
    task_type_id = Column(Uuid, ForeignKey("maintenance_task_types.id"), nullable=True)
    vendor_id = Column(Uuid, ForeignKey("maintenance_vendors.id"), nullable=True)

    description = Column(Text, nullable=False)
    maintenance_type = Column(String(150), nullable=True)

    scheduled_date = Column(Date, nullable=False, index=True)
    completed_date = Column(Date, nullable=True)
    status = Column(db_enum(MaintenanceStatus), default=MaintenanceStatus.SCHEDULED, nullable=False, index=True)
    priority = Column(db_enum(MaintenancePriority), default=MaintenancePriority.MEDIUM, nullable=False)

    # Costs
    cost = Column(Float, nullable=True)
    parts_cost = Column(Float, nullable=True)
    labor_cost = Column(Float, nullable=True)
    total_cost = Column(Float, nullable=True)

    mileage_at_service = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    # Recurrence
    notification_trigger_type = Column(db_enum(NotificationTriggerType), nullable=True)
    next_service_date = Column(Date, nullable=True)
    next_service_mileage = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    vehicle = relationship("Vehicle", lazy="selectin")
    task_type = relationship("MaintenanceTaskType", lazy="selectin")
    vendor = relationship("MaintenanceVendor", lazy="selectin")

    @property
    def effective_cost(self) -> float:
        """Total, else quoted cost, else parts + labor."""
        if self.total_cost:
            return self.total_cost
        if self.cost:
            return self.cost
        return (self.parts_cost or 0) + (self.labor_cost or 0)

    def __repr__(self):
        return f"<MaintenanceRecord(id={self.id}, vehicle={self.vehicle_id}, status='{self.status}')>"
