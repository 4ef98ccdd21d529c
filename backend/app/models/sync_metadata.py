"""
SQLAlchemy models for external attendance sync jobs, their items, and the
payload hash cache that keeps repeated runs idempotent.
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, JSON,
    ForeignKey, Index, UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
import uuid
from typing import Dict, Optional

from app.core.database import Base


class SyncProvider(str, enum.Enum):
    """External systems the engine can push to."""
    TEACHASSIST = "teachassist"


class SyncMode(str, enum.Enum):
    """Whether a run writes to the external system."""
    DRY_RUN = "dry_run"
    EXECUTE = "execute"


class SyncJobStatus(str, enum.Enum):
    """Lifecycle of a sync job."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncItemStatus(str, enum.Enum):
    """Outcome of one planned operation."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class SyncAction(str, enum.Enum):
    """Planner decision for one operation."""
    UPSERT = "upsert"
    NOOP = "noop"


class SyncEntityType(str, enum.Enum):
    """Kind of fact being synchronized."""
    ATTENDANCE = "attendance"


TERMINAL_JOB_STATUSES = (SyncJobStatus.COMPLETED, SyncJobStatus.FAILED)


def empty_summary() -> Dict[str, int]:
    return {"planned": 0, "upserted": 0, "skipped": 0, "failed": 0}


class ExternalSystemMapping(Base):
    """Per-classroom configuration for the external attendance system."""

    __tablename__ = "external_system_mappings"

    id = Column(Integer, primary_key=True, index=True)
    classroom_id = Column(Integer, ForeignKey("classes.id"), nullable=False, unique=True)
    provider = Column(SQLEnum(SyncProvider), nullable=False, default=SyncProvider.TEACHASSIST)

    # TeachAssist settings; the password is only ever stored encrypted
    config = Column(JSON, nullable=False, default=dict)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class SyncJob(Base):
    """One run of the sync pipeline for a classroom."""

    __tablename__ = "sync_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    classroom_id = Column(Integer, ForeignKey("classes.id"), nullable=False)
    provider = Column(SQLEnum(SyncProvider), nullable=False, default=SyncProvider.TEACHASSIST)

    # Run parameters
    mode = Column(SQLEnum(SyncMode), nullable=False)
    source = Column(String(50), nullable=False, default="manual")
    source_payload = Column(JSON, nullable=False, default=dict)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Status and outcome
    status = Column(SQLEnum(SyncJobStatus), nullable=False, default=SyncJobStatus.PENDING)
    summary = Column(JSON, nullable=False, default=empty_summary)
    error_message = Column(Text, nullable=True)

    # Timing
    started_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    items = relationship(
        "SyncJobItem",
        back_populates="sync_job",
        cascade="all, delete-orphan",
        order_by="SyncJobItem.id"
    )

    __table_args__ = (
        Index('idx_sync_jobs_classroom_created', 'classroom_id', 'created_at'),
    )

    # Fetch server-side timestamps on flush instead of lazily
    __mapper_args__ = {"eager_defaults": True}

    @property
    def is_finished(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    @property
    def duration_seconds(self) -> Optional[int]:
        """Get job duration in seconds."""
        if not self.started_at or not self.finished_at:
            return None
        return int((self.finished_at - self.started_at).total_seconds())


class SyncJobItem(Base):
    """Outcome of one planned operation within a job. Append-only."""

    __tablename__ = "sync_job_items"

    id = Column(Integer, primary_key=True, index=True)
    sync_job_id = Column(String(36), ForeignKey("sync_jobs.id"), nullable=False)

    # Operation identity
    entity_type = Column(SQLEnum(SyncEntityType), nullable=False)
    entity_key = Column(String(255), nullable=False)
    action = Column(SQLEnum(SyncAction), nullable=True)
    payload_hash = Column(String(64), nullable=True)
    request_payload = Column(JSON, nullable=True)

    # Outcome
    status = Column(SQLEnum(SyncItemStatus), nullable=False)
    detail = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    sync_job = relationship("SyncJob", back_populates="items")

    __table_args__ = (
        Index('idx_sync_job_items_job', 'sync_job_id'),
        Index('idx_sync_job_items_entity', 'entity_type', 'entity_key'),
    )

    __mapper_args__ = {"eager_defaults": True}


class SyncHashCache(Base):
    """Last payload hash successfully written to the external system."""

    __tablename__ = "sync_hash_cache"

    id = Column(Integer, primary_key=True, index=True)
    classroom_id = Column(Integer, ForeignKey("classes.id"), nullable=False)
    entity_type = Column(SQLEnum(SyncEntityType), nullable=False)
    entity_key = Column(String(255), nullable=False)
    payload_hash = Column(String(64), nullable=False)

    # Job that last advanced this entry
    sync_job_id = Column(String(36), ForeignKey("sync_jobs.id"), nullable=True)

    # Timestamps
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('classroom_id', 'entity_type', 'entity_key', name='uq_sync_hash_cache_entity'),
    )

    __mapper_args__ = {"eager_defaults": True}

    @property
    def cache_key(self) -> str:
        entity_type = self.entity_type.value if isinstance(self.entity_type, enum.Enum) else self.entity_type
        return f"{entity_type}:{self.entity_key}"
