"""
Audit Log Database Model.

Tracks who changed maintenance and compliance records, for compliance
review.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log entry.

    Events logged include maintenance record create/update/delete and
    status changes, incident reports and status changes, spill kit checks,
    restock request updates and settings changes.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (identity provider user id; None for system actions)
    actor_id = Column(String(100), index=True, nullable=True)
    actor_name = Column(String(200), nullable=True)
    actor_role = Column(String(32), nullable=True)

    action = Column(String(100), nullable=False, index=True)

    # What was touched
    entity_type = Column(String(64), nullable=True, index=True)
    entity_id = Column(String(64), nullable=True, index=True)

    meta_data = Column(JSON, nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id}, entity={self.entity_type}:{self.entity_id})>"
