"""
Offline Submission Queue.

Devices that lose connectivity buffer driver incident logs and spill kit
checks, then upload them with a client-generated idempotency key. Uploads
are stored first and processed by replay:

1. Due submissions (PENDING, next_attempt_at unset or passed) are processed oldest first
2. Success marks the submission PROCESSED and records the created row id
3. Failure rolls back that submission's work, counts the attempt and
   schedules the next one with exponential backoff
4. After offline_max_attempts failures the submission is ARCHIVED
"""

import uuid
import logging
from datetime import datetime, timedelta, timezone, date
from typing import Optional, Tuple, List
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import AppException
from backend.app.domain.maintenance.status_buckets import company_today
from backend.app.models.enums import OfflineSubmissionKind, OfflineSubmissionStatus
from backend.app.models.offline_submission import OfflineSubmission
from backend.app.schemas.offline_sync import OfflineSubmissionCreate, ReplayOutcome, ReplayResponse
from backend.app.schemas.spill_incident import DriverIncidentCreate
from backend.app.schemas.spill_kit import SpillKitCheckCreate
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.incident_service import IncidentService
from backend.app.services.spill_kit_service import SpillKitService

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive UTC timestamps
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def backoff_delay(attempts: int) -> timedelta:
    """Delay before the next try after `attempts` failures."""
    seconds = settings.offline_backoff_base_seconds * (2 ** max(attempts - 1, 0))
    return timedelta(seconds=min(seconds, settings.offline_backoff_max_seconds))


class OfflineSyncService:

    @staticmethod
    async def _get_by_key(db: AsyncSession, submitted_by: str, idempotency_key: str) -> Optional[OfflineSubmission]:
        result = await db.execute(
            select(OfflineSubmission).where(
                OfflineSubmission.submitted_by == submitted_by,
                OfflineSubmission.idempotency_key == idempotency_key,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def enqueue(db: AsyncSession, data: OfflineSubmissionCreate, actor: dict) -> Tuple[OfflineSubmission, bool]:
        """
        Store a submission unless the caller already uploaded its idempotency key.

        Keys are scoped per user; another user's key never matches.

        Returns:
            (submission, duplicate) where duplicate is True for a repeated key
        """
        existing = await OfflineSyncService._get_by_key(db, actor["user_id"], data.idempotency_key)
        if existing is not None:
            return existing, True

        submission = OfflineSubmission(
            idempotency_key=data.idempotency_key,
            kind=data.kind,
            payload=data.payload,
            submitted_by=actor["user_id"],
            submitted_role=actor["role"],
            captured_at=data.captured_at,
            status=OfflineSubmissionStatus.PENDING,
            attempts=0,
        )
        db.add(submission)
        try:
            await db.commit()
        except IntegrityError:
            # Concurrent upload of the same key won the insert
            await db.rollback()
            existing = await OfflineSyncService._get_by_key(db, actor["user_id"], data.idempotency_key)
            return existing, True

        await db.refresh(submission)
        return submission, False

    @staticmethod
    async def pending_count(db: AsyncSession, submitted_by: Optional[str] = None) -> int:
        query = select(func.count(OfflineSubmission.id)).where(
            OfflineSubmission.status == OfflineSubmissionStatus.PENDING
        )
        if submitted_by:
            query = query.where(OfflineSubmission.submitted_by == submitted_by)
        return (await db.execute(query)).scalar() or 0

    @staticmethod
    async def _load(db: AsyncSession, submission_id: int) -> OfflineSubmission:
        result = await db.execute(
            select(OfflineSubmission).where(OfflineSubmission.id == submission_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    @staticmethod
    async def _dispatch(db: AsyncSession, submission: OfflineSubmission, captured_at: datetime, today: date) -> uuid.UUID:
        """
        Run the handler for a submission's kind and return the created row id.

        captured_at stands in for "now" so replayed rows carry the capture time.
        """
        if submission.kind == OfflineSubmissionKind.DRIVER_INCIDENT:
            data = DriverIncidentCreate(**submission.payload)
            incident = await IncidentService.create_driver_log(db, data, submission.submitted_by, captured_at)
            return incident.id

        if submission.kind == OfflineSubmissionKind.SPILL_KIT_CHECK:
            data = SpillKitCheckCreate(**submission.payload)
            check, _ = await SpillKitService.record_check(db, data, submission.submitted_by, captured_at, today)
            return check.id

        raise ValueError(f"Unsupported submission kind: {submission.kind}")

    @staticmethod
    async def replay(
        db: AsyncSession,
        now: datetime,
        timezone_name: Optional[str] = None,
        submitted_by: Optional[str] = None,
        limit: int = 50,
    ) -> ReplayResponse:
        """
        Process due submissions.

        Rows created by replay are stamped with the capture time (the device
        clock when sent, else the upload time), and spill kit due dates count
        from the company-local date of that time.

        Args:
            now: Current instant (UTC), used for scheduling and processed_at
            timezone_name: Company timezone (None falls back to the default)
            submitted_by: Restrict to one user's submissions
            limit: Maximum submissions to process in this call
        """
        query = select(OfflineSubmission.id).where(
            OfflineSubmission.status == OfflineSubmissionStatus.PENDING,
            or_(OfflineSubmission.next_attempt_at.is_(None), OfflineSubmission.next_attempt_at <= now),
        )
        if submitted_by:
            query = query.where(OfflineSubmission.submitted_by == submitted_by)
        query = query.order_by(OfflineSubmission.created_at, OfflineSubmission.id).limit(limit)
        submission_ids = (await db.execute(query)).scalars().all()

        outcomes: List[ReplayOutcome] = []
        for submission_id in submission_ids:
            submission = await OfflineSyncService._load(db, submission_id)
            captured_at = _as_utc(submission.captured_at or submission.created_at) or now
            try:
                result_id = await OfflineSyncService._dispatch(
                    db, submission, captured_at, company_today(timezone_name, captured_at)
                )
                submission.status = OfflineSubmissionStatus.PROCESSED
                submission.result_id = result_id
                submission.processed_at = now
                submission.last_error = None
                await db.commit()
                outcomes.append(ReplayOutcome(
                    id=submission_id,
                    idempotency_key=submission.idempotency_key,
                    kind=submission.kind,
                    status=submission.status,
                    attempts=submission.attempts,
                    result_id=result_id,
                ))
            except (AppException, SQLAlchemyError, ValueError) as exc:
                await db.rollback()
                outcomes.append(await OfflineSyncService._record_failure(db, submission_id, exc, now))

        return ReplayResponse(
            processed=sum(1 for o in outcomes if o.status == OfflineSubmissionStatus.PROCESSED),
            failed=sum(1 for o in outcomes if o.status == OfflineSubmissionStatus.PENDING),
            archived=sum(1 for o in outcomes if o.status == OfflineSubmissionStatus.ARCHIVED),
            outcomes=outcomes,
        )

    @staticmethod
    async def _record_failure(db: AsyncSession, submission_id: int, exc: Exception, now: datetime) -> ReplayOutcome:
        error = exc.message if isinstance(exc, AppException) else str(exc)
        submission = await OfflineSyncService._load(db, submission_id)
        submission.attempts += 1
        submission.last_error = error[:2000]

        if submission.attempts >= settings.offline_max_attempts:
            submission.status = OfflineSubmissionStatus.ARCHIVED
            submission.next_attempt_at = None
            logger.error(
                "Offline submission %s archived after %d attempts: %s",
                submission.idempotency_key, submission.attempts, error,
            )
        else:
            submission.next_attempt_at = now + backoff_delay(submission.attempts)
            logger.warning(
                "Offline submission %s failed (attempt %d): %s",
                submission.idempotency_key, submission.attempts, error,
            )
        await db.commit()

        if submission.status == OfflineSubmissionStatus.ARCHIVED:
            await log_event(
                db=db,
                action=AuditAction.OFFLINE_SUBMISSION_ARCHIVED,
                entity_type="offline_submission",
                entity_id=submission.id,
                metadata={
                    "idempotency_key": submission.idempotency_key,
                    "kind": submission.kind.value,
                    "submitted_by": submission.submitted_by,
                    "error": submission.last_error,
                },
            )

        return ReplayOutcome(
            id=submission.id,
            idempotency_key=submission.idempotency_key,
            kind=submission.kind,
            status=submission.status,
            attempts=submission.attempts,
            error=submission.last_error,
        )
