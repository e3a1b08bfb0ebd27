"""
Offline Submission Queue model.

Field devices buffer submissions while offline and upload them on
reconnect. Each submission carries a client-generated idempotency key so a
replayed upload never creates a second row. Keys are unique per submitting
user, not globally.
"""

import uuid
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Uuid, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.db.types import db_enum
from backend.app.models.enums import OfflineSubmissionStatus, OfflineSubmissionKind


class OfflineSubmission(Base):
    __tablename__ = "offline_submissions"
    __table_args__ = (
        UniqueConstraint("submitted_by", "idempotency_key", name="uq_offline_submission_user_key"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    idempotency_key = Column(String(100), nullable=False, index=True)
    kind = Column(db_enum(OfflineSubmissionKind), nullable=False)
    payload = Column(JSON, nullable=False)
    submitted_by = Column(String(100), nullable=False, index=True)
    submitted_role = Column(String(32), nullable=False)

    # Device clock at capture; replay falls back to created_at when absent
    captured_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(db_enum(OfflineSubmissionStatus), default=OfflineSubmissionStatus.PENDING, nullable=False, index=True)
    attempts = Column(Integer, default=0, nullable=False)
    next_attempt_at = Column(DateTime(timezone=True), nullable=True, index=True)
    last_error = Column(Text, nullable=True)

    # Id of the row the submission produced once processed
    result_id = Column(Uuid, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<OfflineSubmission(id={self.id}, kind='{self.kind}', status='{self.status}')>"
