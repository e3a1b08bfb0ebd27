"""
Offline sync schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Dict, Any, List, Optional
from uuid import UUID
from backend.app.models.enums import OfflineSubmissionKind, OfflineSubmissionStatus


class OfflineSubmissionCreate(BaseModel):
    """A submission buffered on the device while offline."""
    idempotency_key: str = Field(..., min_length=8, max_length=100)
    kind: OfflineSubmissionKind
    payload: Dict[str, Any]
    captured_at: Optional[datetime] = Field(None, description="When the device buffered the submission")


class EnqueueResponse(BaseModel):
    id: int
    status: OfflineSubmissionStatus
    duplicate: bool
    pending_count: int


class PendingCountResponse(BaseModel):
    pending_count: int


class ReplayOutcome(BaseModel):
    id: int
    idempotency_key: str
    kind: OfflineSubmissionKind
    status: OfflineSubmissionStatus
    attempts: int
    result_id: Optional[UUID] = None
    error: Optional[str] = None


class ReplayResponse(BaseModel):
    processed: int
    failed: int
    archived: int
    outcomes: List[ReplayOutcome]
