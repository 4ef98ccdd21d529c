"""
Pydantic schemas for external attendance sync requests and results
"""

from pydantic import BaseModel, Field, validator, ConfigDict
from datetime import date, datetime
from typing import List, Dict, Any, Optional
from enum import Enum

from app.core.config import settings
from app.models.sync_metadata import (
    SyncMode, SyncJobStatus, SyncItemStatus, SyncAction, SyncEntityType, SyncProvider
)


class ExecutionMode(str, Enum):
    """How writes are submitted to the external system"""
    FULL_AUTO = "full_auto"
    CONFIRMATION = "confirmation"


class SyncErrorType(str, Enum):
    """Classification of errors reported back to the caller"""
    AUTHENTICATION = "authentication"
    NAVIGATION = "navigation"
    STUDENT_NOT_FOUND = "student_not_found"
    FORM_SUBMISSION = "form_submission"
    BROWSER = "browser"
    VALIDATION = "validation"
    INTERNAL_DATA = "internal_data"
    PERSISTENCE = "persistence"


class DateRange(BaseModel):
    """Inclusive range of class days to sync"""
    from_: date = Field(..., alias="from")
    to: date

    model_config = ConfigDict(populate_by_name=True)

    @validator("to")
    def validate_order(cls, v, values):
        start = values.get("from_")
        if start is None:
            return v
        if v < start:
            raise ValueError("date_range.to must not be before date_range.from")
        if (v - start).days + 1 > settings.SYNC_MAX_DATE_RANGE_DAYS:
            raise ValueError(
                f"date_range may span at most {settings.SYNC_MAX_DATE_RANGE_DAYS} days"
            )
        return v

    def contains(self, day: date) -> bool:
        return self.from_ <= day <= self.to

    def to_payload(self) -> Dict[str, str]:
        return {"from": self.from_.isoformat(), "to": self.to.isoformat()}


class AttendanceSyncRequest(BaseModel):
    """Trigger for one attendance sync run"""
    classroom_id: int
    mode: SyncMode = SyncMode.DRY_RUN
    created_by: Optional[int] = None
    date_range: DateRange
    execution_mode: Optional[ExecutionMode] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "classroom_id": 12,
                "mode": "dry_run",
                "created_by": 3,
                "date_range": {"from": "2025-01-15", "to": "2025-01-15"}
            }
        }
    )


class SyncSummary(BaseModel):
    """Per-job operation counts"""
    planned: int = 0
    upserted: int = 0
    skipped: int = 0
    failed: int = 0


class SyncErrorDetail(BaseModel):
    """Structured error surfaced to the caller"""
    type: SyncErrorType
    message: str
    date: Optional[str] = None
    student_id: Optional[str] = None
    recoverable: bool = False


class UnmatchedStudent(BaseModel):
    """Internal student with no external row"""
    student_id: str
    student_name: str
    best_confidence: int
    date: Optional[str] = None


class AttendanceSyncResult(BaseModel):
    """Outcome of a sync run"""
    ok: bool
    job_id: str
    status: SyncJobStatus
    summary: SyncSummary = Field(default_factory=SyncSummary)
    errors: List[SyncErrorDetail] = Field(default_factory=list)
    unmatched_students: List[UnmatchedStudent] = Field(default_factory=list)


class SyncJobItemResponse(BaseModel):
    """One recorded operation outcome"""
    id: int
    sync_job_id: str
    entity_type: SyncEntityType
    entity_key: str
    action: Optional[SyncAction] = None
    payload_hash: Optional[str] = None
    status: SyncItemStatus
    detail: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SyncJobResponse(BaseModel):
    """Sync job as shown to teachers"""
    id: str
    classroom_id: int
    provider: SyncProvider
    mode: SyncMode
    status: SyncJobStatus
    source: str
    source_payload: Dict[str, Any] = Field(default_factory=dict)
    summary: SyncSummary
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SyncJobDetail(BaseModel):
    """Job together with its items"""
    job: SyncJobResponse
    items: List[SyncJobItemResponse] = Field(default_factory=list)
