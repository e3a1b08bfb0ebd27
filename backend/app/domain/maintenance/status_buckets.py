"""
Maintenance Status Buckets.

Classifies maintenance records into the list view's display buckets
relative to "today" in the company timezone:

    scheduled  scheduled_date >= today and not completed
    due_today  scheduled_date == today and not completed
    overdue    scheduled_date <  today and not completed
    completed  status == completed

scheduled and due_today overlap: a record dated today is in both. The same
rules are available as in-memory predicates and as SQL clauses.
"""

import logging
from datetime import date, datetime
from typing import Optional, Set
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from sqlalchemy import and_
from backend.app.core.config import settings
from backend.app.models.enums import MaintenanceStatus, StatusBucket
from backend.app.models.maintenance import MaintenanceRecord

logger = logging.getLogger(__name__)


def resolve_timezone(timezone_name: Optional[str]) -> ZoneInfo:
    """Company zone, or the default zone when unset or unknown."""
    if timezone_name:
        try:
            return ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown company timezone %r, using %s", timezone_name, settings.default_company_timezone)
    return ZoneInfo(settings.default_company_timezone)


def company_today(timezone_name: Optional[str] = None, now: Optional[datetime] = None) -> date:
    """
    Calendar date in the company timezone.

    Args:
        timezone_name: IANA zone from company settings (None falls back to the default)
        now: Reference instant; naive values are taken as UTC. Defaults to the current time.
    """
    tz = resolve_timezone(timezone_name)
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    return now.astimezone(tz).date()


def _status_value(status) -> str:
    return status.value if isinstance(status, MaintenanceStatus) else status


def in_bucket(bucket: StatusBucket, scheduled_date: date, status, today: date) -> bool:
    """True if a record with this date and status belongs to the bucket."""
    bucket = StatusBucket(bucket)
    completed = _status_value(status) == MaintenanceStatus.COMPLETED.value

    if bucket == StatusBucket.COMPLETED:
        return completed
    if completed:
        return False
    if bucket == StatusBucket.SCHEDULED:
        return scheduled_date >= today
    if bucket == StatusBucket.DUE_TODAY:
        return scheduled_date == today
    return scheduled_date < today


def classify(scheduled_date: date, status, today: date) -> Set[StatusBucket]:
    """All buckets a record falls into (may be more than one)."""
    return {bucket for bucket in StatusBucket if in_bucket(bucket, scheduled_date, status, today)}


def bucket_clause(bucket: StatusBucket, today: date):
    """SQL filter selecting the records of a bucket."""
    bucket = StatusBucket(bucket)
    not_completed = MaintenanceRecord.status != MaintenanceStatus.COMPLETED

    if bucket == StatusBucket.COMPLETED:
        return MaintenanceRecord.status == MaintenanceStatus.COMPLETED
    if bucket == StatusBucket.SCHEDULED:
        return and_(MaintenanceRecord.scheduled_date >= today, not_completed)
    if bucket == StatusBucket.DUE_TODAY:
        return and_(MaintenanceRecord.scheduled_date == today, not_completed)
    return and_(MaintenanceRecord.scheduled_date < today, not_completed)
