"""
Attendance Sync Service

One-way push of internal attendance into TeachAssist. A run loads the
classroom's attendance facts and plans operations against the hash cache.
When anything changed it opens one browser session and, for each class day
with changes, matches the roster against the external rows and (in execute
mode) records every changed status. Every planned operation ends as a job
item; the job ends completed or failed.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import CredentialCipher
from app.core.teachassist_config import TeachAssistCredentials
from app.integrations.teachassist.base import ExternalAttendanceDriver
from app.integrations.teachassist.error_handler import (
    ExternalConfigurationError,
    ExternalErrorCategory,
    ExternalSystemError,
)
from app.integrations.teachassist.playwright_driver import PlaywrightTeachAssistDriver
from app.models.sync_metadata import (
    SyncAction, SyncEntityType, SyncItemStatus, SyncJob, SyncJobStatus, SyncMode
)
from app.schemas.sync import (
    AttendanceSyncRequest, AttendanceSyncResult, DateRange, ExecutionMode,
    SyncErrorDetail, SyncErrorType, SyncJobDetail, SyncJobItemResponse,
    SyncJobResponse, SyncSummary, UnmatchedStudent
)
from .attendance_source import AttendanceFactLoader
from .config_service import ExternalConfigService
from .data_validator import split_valid_rows
from .dataset_normalizer import normalize_dataset
from .errors import InternalDataLoadError, SyncJobNotFoundError, SyncStateError
from .hash_planner import plan_operations
from .operation_mapper import attendance_entity_key, map_dataset_to_operations
from .state_store import SyncStateStore, build_sync_summary
from .student_matcher import match_students
from .types import AttendanceFact, ExecutedOperation, InternalStudent, PlannedOperation

logger = logging.getLogger(__name__)


DriverFactory = Callable[[ExecutionMode], ExternalAttendanceDriver]

PLANNED_ONLY = "planned-only"
UNCHANGED = "unchanged since last sync"

_CATEGORY_ERROR_TYPES = {
    ExternalErrorCategory.AUTHENTICATION: SyncErrorType.AUTHENTICATION,
    ExternalErrorCategory.NAVIGATION: SyncErrorType.NAVIGATION,
    ExternalErrorCategory.FORM_SUBMISSION: SyncErrorType.FORM_SUBMISSION,
}


def _default_driver_factory(execution_mode: ExecutionMode) -> ExternalAttendanceDriver:
    return PlaywrightTeachAssistDriver(execution_mode=execution_mode)


def classify_external_error(error: Exception) -> SyncErrorType:
    """Error type reported to the caller for a collaborator failure."""
    category = getattr(error, "category", None)
    return _CATEGORY_ERROR_TYPES.get(category, SyncErrorType.BROWSER)


@dataclass
class _RunState:
    """Mutable outcome of one job while it runs."""
    job_id: str
    mode: SyncMode
    results: List[ExecutedOperation] = field(default_factory=list)
    errors: List[SyncErrorDetail] = field(default_factory=list)
    unmatched: List[UnmatchedStudent] = field(default_factory=list)
    credentials: Optional[TeachAssistCredentials] = None

    def scrub(self, text: Optional[str]) -> Optional[str]:
        if self.credentials is None:
            return text
        return self.credentials.scrub(text)

    def add_error(self, error_type: SyncErrorType, message: str, recoverable: bool = True, **context) -> None:
        self.errors.append(SyncErrorDetail(
            type=error_type,
            message=self.scrub(message),
            recoverable=recoverable,
            **context
        ))


@dataclass
class _DayPlan:
    """Operations planned for one class day before the external view is read."""
    day: str
    facts: List[AttendanceFact]
    planned: List[PlannedOperation]
    rows_by_key: Dict[str, Dict[str, Any]]
    invalid: List[ExecutedOperation] = field(default_factory=list)

    @property
    def upserts(self) -> List[PlannedOperation]:
        return [op for op in self.planned if op.action == SyncAction.UPSERT.value]

    def settle_noops(self) -> List[ExecutedOperation]:
        """Skipped items for the noops; these never need the external system."""
        return [
            ExecutedOperation.from_planned(op, SyncItemStatus.SKIPPED.value, UNCHANGED)
            for op in self.planned if op.action == SyncAction.NOOP.value
        ]


class AttendanceSyncService:
    """
    Runs attendance sync jobs for classrooms.

    The browser driver is created per job through ``driver_factory`` so that
    no session is ever shared between jobs.
    """

    def __init__(
        self,
        db: AsyncSession,
        driver_factory: Optional[DriverFactory] = None,
        cipher: Optional[CredentialCipher] = None,
        match_threshold: Optional[int] = None
    ):
        self.db = db
        self.driver_factory = driver_factory or _default_driver_factory
        self.match_threshold = match_threshold
        self.state_store = SyncStateStore(db)
        self.fact_loader = AttendanceFactLoader(db)
        self.config_service = ExternalConfigService(db, cipher)

    async def run_attendance_sync(
        self,
        request: AttendanceSyncRequest,
        retry_of: Optional[str] = None
    ) -> AttendanceSyncResult:
        """
        Run one sync job to completion.

        Raises:
            SyncStateError: If the job row itself could not be created
        """
        source_payload: Dict[str, Any] = {"date_range": request.date_range.to_payload()}
        if request.execution_mode is not None:
            source_payload["execution_mode"] = request.execution_mode.value
        if retry_of:
            source_payload["retry_of"] = retry_of

        job = await self.state_store.insert_sync_job(
            classroom_id=request.classroom_id,
            mode=request.mode,
            created_by=request.created_by,
            source_payload=source_payload
        )
        state = _RunState(job_id=job.id, mode=SyncMode(request.mode))

        logger.info(
            f"Starting attendance sync job {state.job_id} for classroom {request.classroom_id} "
            f"({state.mode.value}, {request.date_range.from_} to {request.date_range.to})"
        )

        error_message = None
        try:
            await self._run(request, state)
        except InternalDataLoadError as e:
            error_message = str(e)
            state.add_error(SyncErrorType.INTERNAL_DATA, error_message, recoverable=False)
        except SyncStateError as e:
            error_message = str(e)
            state.add_error(SyncErrorType.PERSISTENCE, error_message, recoverable=False)
        except ExternalSystemError as e:
            error_message = state.scrub(e.message)
            state.add_error(classify_external_error(e), error_message, recoverable=False)
        except Exception as e:
            logger.exception(f"Unexpected error in sync job {state.job_id}")
            error_message = state.scrub(f"Unexpected error: {e}")
            state.add_error(SyncErrorType.BROWSER, error_message, recoverable=False)

        if state.mode == SyncMode.EXECUTE:
            try:
                await self.state_store.save_hash_cache(request.classroom_id, state.job_id, state.results)
            except SyncStateError as e:
                # Writes already reached the external system; a replay sets the same values
                error_message = error_message or str(e)
                state.add_error(SyncErrorType.PERSISTENCE, str(e), recoverable=True)

        summary = build_sync_summary(state.results)
        status = SyncJobStatus.FAILED if error_message else SyncJobStatus.COMPLETED

        try:
            await self.state_store.finalize_sync_job(state.job_id, status, summary, error_message)
        except (SyncStateError, SyncJobNotFoundError) as e:
            status = SyncJobStatus.FAILED
            state.add_error(SyncErrorType.PERSISTENCE, str(e), recoverable=False)

        if status == SyncJobStatus.FAILED:
            logger.error(f"Attendance sync job {state.job_id} failed: {error_message}")
        else:
            logger.info(
                f"Attendance sync job {state.job_id} completed: {summary['planned']} planned, "
                f"{summary['upserted']} upserted, {summary['skipped']} skipped, {summary['failed']} failed"
            )

        return AttendanceSyncResult(
            ok=status == SyncJobStatus.COMPLETED and summary["failed"] == 0,
            job_id=state.job_id,
            status=status,
            summary=SyncSummary(**summary),
            errors=state.errors,
            unmatched_students=state.unmatched
        )

    async def _run(self, request: AttendanceSyncRequest, state: _RunState) -> None:
        classroom_id = request.classroom_id

        roster = await self.fact_loader.load_roster(classroom_id)
        facts = await self.fact_loader.load_attendance(classroom_id, request.date_range, roster)
        known_hashes = await self.state_store.load_hash_cache(classroom_id)

        if not facts:
            logger.info(f"No attendance to sync for classroom {classroom_id}")
            return

        students_by_key = {student.student_id: student for student in roster}
        facts_by_date: Dict[str, List[AttendanceFact]] = OrderedDict()
        for fact in sorted(facts, key=lambda f: f.date):
            facts_by_date.setdefault(fact.date, []).append(fact)

        # Payloads do not depend on matching, so the whole run is planned up front
        plans = [
            self._plan(day, day_facts, students_by_key, known_hashes, state)
            for day, day_facts in facts_by_date.items()
        ]

        if not any(plan.upserts for plan in plans):
            logger.info(f"Attendance for classroom {classroom_id} unchanged since last sync")
            for plan in plans:
                await self._record_day(state, plan.invalid + plan.settle_noops())
            return

        config = await self.config_service.get_config(classroom_id)
        if config is None:
            raise ExternalConfigurationError(
                f"Classroom {classroom_id} has no TeachAssist configuration"
            )
        state.credentials = self.config_service.load_credentials(config)

        driver = self.driver_factory(request.execution_mode or config.execution_mode)
        session = None
        try:
            session = await driver.launch_browser()
            page = await driver.create_page(session)
            await driver.login_to_external_system(page, state.credentials)
            await driver.select_course(page, config.course_search)

            for plan in plans:
                day_results: List[ExecutedOperation] = list(plan.invalid)
                try:
                    if plan.upserts:
                        await self._sync_date(driver, page, plan, students_by_key, state, day_results)
                    else:
                        day_results.extend(plan.settle_noops())
                finally:
                    await self._record_day(state, day_results)
        finally:
            if session is not None:
                try:
                    await driver.close_browser(session)
                except Exception as e:
                    logger.warning(f"Failed to close browser for sync job {state.job_id}: {e}")

    async def _record_day(self, state: _RunState, day_results: List[ExecutedOperation]) -> None:
        state.results.extend(day_results)
        await self.state_store.record_items(state.job_id, day_results)

    async def _sync_date(
        self,
        driver: ExternalAttendanceDriver,
        page: Any,
        plan: _DayPlan,
        students_by_key: Dict[str, InternalStudent],
        state: _RunState,
        day_results: List[ExecutedOperation]
    ) -> None:
        """Match and act on one class day, appending an item per operation."""
        day = plan.day

        try:
            await driver.navigate_to_attendance_view(page, day)
            external_rows = await driver.read_attendance_rows(page)
        except Exception as e:
            if getattr(e, "fatal", False):
                raise
            detail = state.scrub(f"Could not open TeachAssist attendance for {day}: {e}")
            logger.warning(f"Sync job {state.job_id}: {detail}")
            state.add_error(classify_external_error(e), detail, date=day)

            for op in plan.planned:
                if op.action == SyncAction.NOOP.value:
                    day_results.append(ExecutedOperation.from_planned(op, SyncItemStatus.SKIPPED.value, UNCHANGED))
                else:
                    day_results.append(ExecutedOperation.from_planned(op, SyncItemStatus.FAILED.value, detail))
            return

        day_students = [students_by_key[key] for key in OrderedDict.fromkeys(f.student_key for f in plan.facts)
                        if key in students_by_key]
        matches = match_students(day_students, external_rows, self.match_threshold)
        references = {}
        for match in matches:
            if match.matched:
                references[match.student_id] = match.external_row_reference
            else:
                state.unmatched.append(UnmatchedStudent(
                    student_id=match.student_id,
                    student_name=match.student_name,
                    best_confidence=match.confidence,
                    date=day
                ))

        for op in plan.planned:
            row = plan.rows_by_key[op.entity_key]

            if op.action == SyncAction.NOOP.value:
                day_results.append(ExecutedOperation.from_planned(op, SyncItemStatus.SKIPPED.value, UNCHANGED))
                continue

            reference = references.get(row["student_key"])
            if not reference:
                detail = f'Student "{row["student_name"]}" not matched in external system'
                day_results.append(ExecutedOperation.from_planned(op, SyncItemStatus.FAILED.value, detail))
                state.add_error(SyncErrorType.STUDENT_NOT_FOUND, detail, date=day, student_id=row["student_key"])
                continue

            if state.mode == SyncMode.DRY_RUN:
                day_results.append(ExecutedOperation.from_planned(op, SyncItemStatus.SKIPPED.value, PLANNED_ONLY))
                continue

            try:
                await driver.record_attendance_for_row(page, reference, op.payload["status"])
            except Exception as e:
                detail = state.scrub(str(e))
                day_results.append(ExecutedOperation.from_planned(op, SyncItemStatus.FAILED.value, detail))
                if getattr(e, "fatal", False):
                    raise
                logger.warning(f"Sync job {state.job_id}: failed to record {op.entity_key}: {detail}")
                state.add_error(classify_external_error(e), detail, date=day, student_id=row["student_key"])
                continue

            day_results.append(ExecutedOperation.from_planned(op, SyncItemStatus.SUCCESS.value))

    def _plan(
        self,
        day: str,
        facts: List[AttendanceFact],
        students_by_key: Dict[str, InternalStudent],
        known_hashes: Dict[str, str],
        state: _RunState
    ) -> _DayPlan:
        """
        Normalize, validate, map and plan one day of facts.

        Rows the validator refuses become failed items on the plan.
        """
        merged = []
        for fact in facts:
            student = students_by_key.get(fact.student_key)
            merged.append({
                "student_key": fact.student_key,
                "date": fact.date,
                "status": fact.status,
                "student_name": student.display_name if student else fact.student_key,
            })

        valid, issues = split_valid_rows(normalize_dataset(merged))
        invalid = []
        for issue in issues:
            student_key = issue.row.get("student_key") or ""
            invalid.append(ExecutedOperation(
                entity_type=SyncEntityType.ATTENDANCE.value,
                entity_key=attendance_entity_key(student_key, issue.row.get("date") or ""),
                status=SyncItemStatus.FAILED.value,
                payload={k: issue.row.get(k) for k in ("student_key", "date", "status")},
                detail=issue.error
            ))
            state.add_error(SyncErrorType.VALIDATION, issue.error, date=issue.row.get("date"), student_id=student_key)

        return _DayPlan(
            day=day,
            facts=facts,
            planned=plan_operations(map_dataset_to_operations(valid), known_hashes),
            rows_by_key={attendance_entity_key(row["student_key"], row["date"]): row for row in valid},
            invalid=invalid
        )

    async def retry_sync_job(self, job_id: str, created_by: Optional[int] = None) -> AttendanceSyncResult:
        """Re-run a finished job as a new job with the same parameters."""
        job = await self.state_store.get_sync_job(job_id)
        if job is None:
            raise SyncJobNotFoundError(f"Sync job {job_id} not found")
        if not job.is_finished:
            raise SyncStateError(f"Sync job {job_id} is still {job.status.value}")

        payload = job.source_payload or {}
        execution_mode = payload.get("execution_mode")
        request = AttendanceSyncRequest(
            classroom_id=job.classroom_id,
            mode=job.mode,
            created_by=created_by if created_by is not None else job.created_by,
            date_range=DateRange(**payload["date_range"]),
            execution_mode=ExecutionMode(execution_mode) if execution_mode else None
        )
        logger.info(f"Retrying sync job {job_id}")
        return await self.run_attendance_sync(request, retry_of=job_id)

    async def get_sync_job_detail(self, job_id: str) -> SyncJobDetail:
        job = await self.state_store.get_sync_job_detail(job_id)
        if job is None:
            raise SyncJobNotFoundError(f"Sync job {job_id} not found")
        return SyncJobDetail(
            job=SyncJobResponse.model_validate(job),
            items=[SyncJobItemResponse.model_validate(item) for item in job.items]
        )

    async def list_sync_jobs(self, classroom_id: int, limit: int = 20) -> List[SyncJobResponse]:
        jobs: List[SyncJob] = await self.state_store.list_sync_jobs(classroom_id, limit)
        return [SyncJobResponse.model_validate(job) for job in jobs]


async def run_attendance_sync(
    request: AttendanceSyncRequest,
    db: AsyncSession,
    driver: Optional[ExternalAttendanceDriver] = None
) -> AttendanceSyncResult:
    """Run one attendance sync job, optionally with a supplied driver."""
    driver_factory = (lambda execution_mode: driver) if driver is not None else None
    service = AttendanceSyncService(db, driver_factory=driver_factory)
    return await service.run_attendance_sync(request)
