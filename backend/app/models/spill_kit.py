"""
Spill kit compliance models.

Templates describe the expected kit contents per vehicle type; checks record
one inspection of one vehicle's kit; restock requests are raised when a
check finds missing items.
"""

import uuid
from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Text, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.db.types import db_enum
from backend.app.models.enums import KitCompletionStatus, RestockStatus


class SpillKitTemplate(Base):
    __tablename__ = "spill_kit_templates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    vehicle_types = Column(JSON, default=list, nullable=False)  # e.g. ["truck", "pump_truck"]
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    items = relationship(
        "SpillKitTemplateItem",
        back_populates="template",
        lazy="selectin",
        order_by="SpillKitTemplateItem.display_order",
    )

    def __repr__(self):
        return f"<SpillKitTemplate(id={self.id}, name='{self.name}')>"


class SpillKitTemplateItem(Base):
    __tablename__ = "spill_kit_template_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    template_id = Column(Uuid, ForeignKey("spill_kit_templates.id"), nullable=False, index=True)
    item_name = Column(String(200), nullable=False)
    required_quantity = Column(Integer, default=1, nullable=False)
    critical_item = Column(Boolean, default=False, nullable=False)
    category = Column(String(100), default="general", nullable=False)
    expiration_trackable = Column(Boolean, default=False, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)

    template = relationship("SpillKitTemplate", back_populates="items")


class VehicleSpillKitCheck(Base):
    """
    One spill kit inspection.

    item_conditions maps template item id -> {status, actual_quantity,
    expiration_date, notes, item_name, item_category}. Rows are soft-deleted
    through deleted_at.
    """
    __tablename__ = "vehicle_spill_kit_checks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    vehicle_id = Column(Uuid, ForeignKey("vehicles.id"), nullable=False, index=True)
    template_id = Column(Uuid, ForeignKey("spill_kit_templates.id"), nullable=True)

    has_kit = Column(Boolean, default=True, nullable=False)
    item_conditions = Column(JSON, default=dict, nullable=False)
    missing_items = Column(JSON, default=list, nullable=False)
    photos = Column(JSON, default=list, nullable=False)
    notes = Column(Text, nullable=True)
    weather_conditions = Column(String(255), nullable=True)
    inspection_duration_minutes = Column(Integer, nullable=True)
    completion_status = Column(db_enum(KitCompletionStatus), nullable=False)

    next_check_due = Column(Date, nullable=False)
    checked_at = Column(DateTime(timezone=True), nullable=False)
    checked_by_clerk = Column(String(100), nullable=True)

    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    vehicle = relationship("Vehicle", lazy="selectin")

    def __repr__(self):
        return f"<VehicleSpillKitCheck(id={self.id}, vehicle={self.vehicle_id}, status='{self.completion_status}')>"


class SpillKitRestockRequest(Base):
    __tablename__ = "spill_kit_restock_requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    vehicle_id = Column(Uuid, ForeignKey("vehicles.id"), nullable=False, index=True)
    template_id = Column(Uuid, ForeignKey("spill_kit_templates.id"), nullable=True)
    check_id = Column(Uuid, ForeignKey("vehicle_spill_kit_checks.id"), nullable=True)

    missing_items = Column(JSON, default=list, nullable=False)  # [{name, quantity}]
    status = Column(db_enum(RestockStatus), default=RestockStatus.PENDING, nullable=False, index=True)
    priority = Column(String(20), default="normal", nullable=False)
    assigned_to = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    vehicle = relationship("Vehicle", lazy="selectin")

    def __repr__(self):
        return f"<SpillKitRestockRequest(id={self.id}, vehicle={self.vehicle_id}, status='{self.status}')>"
