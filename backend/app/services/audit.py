"""
Audit logging service for maintenance and compliance changes.

Provides centralized logging for compliance review.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    # Maintenance
    MAINTENANCE_CREATED = "MAINTENANCE_CREATED"
    RECURRING_SERVICE_CREATED = "RECURRING_SERVICE_CREATED"
    MAINTENANCE_UPDATED = "MAINTENANCE_UPDATED"
    MAINTENANCE_COMPLETED = "MAINTENANCE_COMPLETED"
    MAINTENANCE_REOPENED = "MAINTENANCE_REOPENED"
    MAINTENANCE_DELETED = "MAINTENANCE_DELETED"
    VENDOR_CREATED = "VENDOR_CREATED"

    # Spill incidents
    INCIDENT_REPORTED = "INCIDENT_REPORTED"
    INCIDENT_STATUS_CHANGED = "INCIDENT_STATUS_CHANGED"
    INCIDENT_PHOTOS_UPLOADED = "INCIDENT_PHOTOS_UPLOADED"
    DECON_LOGGED = "DECON_LOGGED"

    # Spill kits
    SPILL_KIT_CHECK_RECORDED = "SPILL_KIT_CHECK_RECORDED"
    SPILL_KIT_CHECK_DELETED = "SPILL_KIT_CHECK_DELETED"
    RESTOCK_REQUESTED = "RESTOCK_REQUESTED"
    RESTOCK_UPDATED = "RESTOCK_UPDATED"

    # Settings
    SETTINGS_UPDATED = "SETTINGS_UPDATED"

    # Offline queue
    OFFLINE_SUBMISSION_ARCHIVED = "OFFLINE_SUBMISSION_ARCHIVED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor: Optional[Dict[str, Any]] = None,
    entity_type: Optional[str] = None,
    entity_id: Any = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Log a change to the audit log.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor: Claims of the user performing the action (None for system actions)
        entity_type: Kind of row touched, e.g. "maintenance_record"
        entity_id: Id of the row touched
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance
    """
    actor = actor or {}
    audit_log = AuditLog(
        actor_id=actor.get("user_id"),
        actor_name=actor.get("name") or actor.get("sub"),
        actor_role=actor.get("role"),
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta_data=metadata,
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Any = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)

    if entity_id is not None:
        query = query.where(AuditLog.entity_id == str(entity_id))

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
