"""
Enumerations shared across the fleet maintenance and compliance models.

Values match the strings stored by the hosted product so rows written by
either side stay interchangeable.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration (from the identity provider's role claim).

    Roles:
        OWNER: Company owner, full access
        ADMIN: Office administrator
        DISPATCHER: Schedules work and reviews compliance
        DRIVER: Field user; logs incidents and runs spill kit checks
    """
    OWNER = "owner"
    ADMIN = "admin"
    DISPATCHER = "dispatcher"
    DRIVER = "driver"


STAFF_ROLES = [UserRole.OWNER, UserRole.ADMIN, UserRole.DISPATCHER]


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "available"
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    PERMANENTLY_RETIRED = "permanently_retired"


class MaintenanceStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MaintenancePriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class NotificationTriggerType(str, enum.Enum):
    DATE_BASED = "date_based"
    MILEAGE_BASED = "mileage_based"


class IntervalType(str, enum.Enum):
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    MILES = "miles"


class StatusBucket(str, enum.Enum):
    """
    Display buckets for the maintenance list.

    SCHEDULED and DUE_TODAY overlap for records dated today.
    """
    SCHEDULED = "scheduled"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"
    COMPLETED = "completed"


class IncidentSeverity(str, enum.Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    REPORTABLE = "reportable"


class IncidentStatus(str, enum.Enum):
    PENDING_REVIEW = "pending_review"
    OPEN = "open"
    UNDER_INVESTIGATION = "under_investigation"
    CLOSED = "closed"


class ItemConditionStatus(str, enum.Enum):
    PRESENT = "present"
    MISSING = "missing"
    LOW = "low"
    EXPIRED = "expired"


class KitCompletionStatus(str, enum.Enum):
    FAILED = "failed"
    PARTIAL = "partial"
    WARNING = "warning"
    COMPLIANT = "compliant"


class ExpirationStatus(str, enum.Enum):
    EXPIRED = "expired"
    EXPIRING_SOON = "expiring_soon"
    OK = "ok"


class RestockStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OfflineSubmissionStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    ARCHIVED = "ARCHIVED"  # Gave up after max attempts


class OfflineSubmissionKind(str, enum.Enum):
    DRIVER_INCIDENT = "driver_incident"
    SPILL_KIT_CHECK = "spill_kit_check"


class DeconLocationType(str, enum.Enum):
    FACILITY = "facility"
    FIELD = "field"
    CUSTOMER_SITE = "customer_site"
    DISPOSAL_SITE = "disposal_site"
    OTHER = "other"


class PostInspectionStatus(str, enum.Enum):
    PASS = "pass"
    FAIL = "fail"
    CONDITIONAL = "conditional"
    NOT_APPLICABLE = "not_applicable"
