"""
Internal attendance facts for a classroom.

Facts are computed per student per class day: a recorded status wins; a past
class day with no record counts as absent; today or a later day with no
record is still pending and is never synced.
"""

import logging
from datetime import date, datetime
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.attendance import AttendanceRecord, AttendanceStatus
from app.models.class_session import ClassSession, StudentEnrollment
from app.models.user import User
from app.schemas.sync import DateRange
from .errors import InternalDataLoadError
from .types import AttendanceFact, InternalStudent

logger = logging.getLogger(__name__)


PENDING_STATUS = "pending"


def school_today(timezone_name: Optional[str] = None) -> date:
    """Current date in the school's timezone."""
    return datetime.now(ZoneInfo(timezone_name or settings.SCHOOL_TIMEZONE)).date()


def compute_attendance_statuses(
    student_keys: Sequence[str],
    session_dates: Mapping[int, date],
    recorded: Mapping[Tuple[str, int], str],
    today: date
) -> List[AttendanceFact]:
    """
    Derive one fact per (student, class session).

    Args:
        student_keys: Roster student keys
        session_dates: class_session_id -> session date, in the order wanted
        recorded: (student_key, class_session_id) -> recorded status value
        today: Reference date that separates past days from pending ones

    Returns:
        Facts ordered by session, then roster order
    """
    facts = []
    for session_id, session_date in session_dates.items():
        for student_key in student_keys:
            status = recorded.get((student_key, session_id))
            if status is None:
                status = AttendanceStatus.ABSENT.value if session_date < today else PENDING_STATUS
            facts.append(AttendanceFact(
                student_key=student_key,
                date=session_date.isoformat(),
                status=status
            ))
    return facts


class AttendanceFactLoader:
    """Reads the roster and attendance facts a sync run pushes out."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_roster(self, classroom_id: int) -> List[InternalStudent]:
        """Actively enrolled students, ordered by name."""
        try:
            result = await self.db.execute(
                select(User)
                .join(StudentEnrollment, StudentEnrollment.student_id == User.id)
                .where(
                    StudentEnrollment.class_id == classroom_id,
                    StudentEnrollment.is_active == True
                )
                .order_by(User.last_name, User.first_name, User.id)
            )
            users = result.scalars().all()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise InternalDataLoadError(f"Failed to load roster for classroom {classroom_id}: {e}") from e

        return [
            InternalStudent(
                student_id=str(user.id),
                first_name=user.first_name or "",
                last_name=user.last_name or ""
            )
            for user in users
        ]

    async def load_attendance(
        self,
        classroom_id: int,
        date_range: DateRange,
        roster: Sequence[InternalStudent],
        today: Optional[date] = None
    ) -> List[AttendanceFact]:
        """Syncable facts for the class days inside ``date_range``."""
        today = today or school_today()

        try:
            session_result = await self.db.execute(
                select(ClassSession.id, ClassSession.session_date)
                .where(
                    ClassSession.class_id == classroom_id,
                    ClassSession.is_class_day == True,
                    ClassSession.session_date >= date_range.from_,
                    ClassSession.session_date <= date_range.to
                )
                .order_by(ClassSession.session_date, ClassSession.id)
            )
            session_dates: Dict[int, date] = {row.id: row.session_date for row in session_result}

            recorded: Dict[Tuple[str, int], str] = {}
            if session_dates:
                record_result = await self.db.execute(
                    select(
                        AttendanceRecord.student_id,
                        AttendanceRecord.class_session_id,
                        AttendanceRecord.status
                    ).where(AttendanceRecord.class_session_id.in_(list(session_dates)))
                )
                for row in record_result:
                    status = row.status.value if isinstance(row.status, AttendanceStatus) else row.status
                    recorded[(str(row.student_id), row.class_session_id)] = status
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise InternalDataLoadError(
                f"Failed to load attendance for classroom {classroom_id}: {e}"
            ) from e

        facts = compute_attendance_statuses(
            [student.student_id for student in roster], session_dates, recorded, today
        )
        syncable = [fact for fact in facts if fact.status != PENDING_STATUS]

        pending = len(facts) - len(syncable)
        if pending:
            logger.info(f"Skipping {pending} pending attendance facts dated {today} or later")
        return syncable
