"""
Sync State Store

Persists sync jobs, their per-operation items and the payload hash cache.
Every write commits immediately so that a job row and the items already
recorded survive a failure later in the run.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.sync_metadata import (
    SyncJob, SyncJobItem, SyncHashCache,
    SyncProvider, SyncMode, SyncJobStatus, SyncItemStatus, SyncAction, SyncEntityType,
    TERMINAL_JOB_STATUSES, empty_summary
)
from .errors import SyncStateError, SyncJobNotFoundError
from .hash_planner import hash_cache_key
from .types import ExecutedOperation

logger = logging.getLogger(__name__)


def build_sync_summary(results: Iterable[ExecutedOperation]) -> Dict[str, int]:
    """Count item outcomes into the job summary shape."""
    summary = empty_summary()
    for result in results:
        summary["planned"] += 1
        if result.status == SyncItemStatus.SUCCESS.value:
            if result.action == SyncAction.UPSERT.value:
                summary["upserted"] += 1
        elif result.status == SyncItemStatus.SKIPPED.value:
            summary["skipped"] += 1
        elif result.status == SyncItemStatus.FAILED.value:
            summary["failed"] += 1
    return summary


class SyncStateStore:
    """Async persistence for sync jobs, items and the hash cache."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # Jobs

    async def insert_sync_job(
        self,
        classroom_id: int,
        mode: SyncMode,
        created_by: Optional[int] = None,
        source: str = "playwright_attendance",
        source_payload: Optional[Dict[str, Any]] = None,
        provider: SyncProvider = SyncProvider.TEACHASSIST
    ) -> SyncJob:
        """Create a job and move it straight from pending to running."""
        job = SyncJob(
            classroom_id=classroom_id,
            provider=provider,
            mode=SyncMode(mode),
            source=source,
            source_payload=source_payload or {},
            created_by=created_by,
            status=SyncJobStatus.PENDING,
            summary=empty_summary()
        )

        try:
            self.db.add(job)
            await self.db.flush()

            job.status = SyncJobStatus.RUNNING
            job.started_at = datetime.now(timezone.utc)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise SyncStateError(f"Failed to create sync job for classroom {classroom_id}: {e}") from e

        logger.info(f"Created sync job {job.id} for classroom {classroom_id} ({job.mode.value})")
        return job

    async def finalize_sync_job(
        self,
        job_id: str,
        status: SyncJobStatus,
        summary: Dict[str, int],
        error_message: Optional[str] = None
    ) -> SyncJob:
        """Move a running job to its single terminal state."""
        status = SyncJobStatus(status)
        if status not in TERMINAL_JOB_STATUSES:
            raise ValueError(f"{status.value} is not a terminal job status")

        try:
            job = await self.get_sync_job(job_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise SyncStateError(f"Failed to load sync job {job_id}: {e}") from e

        if job is None:
            raise SyncJobNotFoundError(f"Sync job {job_id} not found")
        if job.is_finished:
            raise SyncStateError(f"Sync job {job_id} is already {job.status.value}")

        job.status = status
        job.summary = dict(summary)
        job.error_message = error_message
        job.finished_at = datetime.now(timezone.utc)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise SyncStateError(f"Failed to finalize sync job {job_id}: {e}") from e

        return job

    async def get_sync_job(self, job_id: str) -> Optional[SyncJob]:
        result = await self.db.execute(
            select(SyncJob).where(SyncJob.id == job_id)
        )
        return result.scalar_one_or_none()

    async def get_sync_job_detail(self, job_id: str) -> Optional[SyncJob]:
        """Get a job with its items eagerly loaded in creation order."""
        result = await self.db.execute(
            select(SyncJob)
            .options(selectinload(SyncJob.items))
            .where(SyncJob.id == job_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_sync_jobs(self, classroom_id: int, limit: int = 20) -> List[SyncJob]:
        """Most recent jobs for a classroom, newest first."""
        result = await self.db.execute(
            select(SyncJob)
            .where(SyncJob.classroom_id == classroom_id)
            .order_by(desc(SyncJob.created_at), desc(SyncJob.started_at))
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # Items

    async def record_items(self, job_id: str, results: Iterable[ExecutedOperation]) -> List[SyncJobItem]:
        """Append item rows for a job. Items are never updated afterwards."""
        items = [
            SyncJobItem(
                sync_job_id=job_id,
                entity_type=SyncEntityType(result.entity_type),
                entity_key=result.entity_key,
                action=SyncAction(result.action) if result.action else None,
                payload_hash=result.payload_hash,
                request_payload=result.payload or None,
                status=SyncItemStatus(result.status),
                detail=result.detail
            )
            for result in results
        ]
        if not items:
            return []

        try:
            self.db.add_all(items)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise SyncStateError(f"Failed to record {len(items)} items for sync job {job_id}: {e}") from e

        return items

    # Hash cache

    async def load_hash_cache(self, classroom_id: int) -> Dict[str, str]:
        """Known payload hashes keyed by ``entity_type:entity_key``."""
        try:
            result = await self.db.execute(
                select(SyncHashCache).where(SyncHashCache.classroom_id == classroom_id)
            )
        except SQLAlchemyError as e:
            raise SyncStateError(f"Failed to load hash cache for classroom {classroom_id}: {e}") from e
        return {entry.cache_key: entry.payload_hash for entry in result.scalars().all()}

    async def save_hash_cache(
        self,
        classroom_id: int,
        job_id: str,
        results: Iterable[ExecutedOperation]
    ) -> int:
        """
        Advance the cache with every successful upsert of a job.

        Returns:
            Number of cache entries written
        """
        written: Dict[str, ExecutedOperation] = {}
        for result in results:
            if result.status == SyncItemStatus.SUCCESS.value and result.action == SyncAction.UPSERT.value:
                written[hash_cache_key(result.entity_type, result.entity_key)] = result
        if not written:
            return 0

        try:
            existing_result = await self.db.execute(
                select(SyncHashCache).where(
                    SyncHashCache.classroom_id == classroom_id,
                    SyncHashCache.entity_key.in_([r.entity_key for r in written.values()])
                )
            )
            existing = {entry.cache_key: entry for entry in existing_result.scalars().all()}

            for key, result in written.items():
                entry = existing.get(key)
                if entry is None:
                    self.db.add(SyncHashCache(
                        classroom_id=classroom_id,
                        entity_type=SyncEntityType(result.entity_type),
                        entity_key=result.entity_key,
                        payload_hash=result.payload_hash,
                        sync_job_id=job_id
                    ))
                else:
                    entry.payload_hash = result.payload_hash
                    entry.sync_job_id = job_id

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise SyncStateError(f"Failed to update hash cache for sync job {job_id}: {e}") from e

        logger.debug(f"Advanced {len(written)} hash cache entries for classroom {classroom_id}")
        return len(written)
