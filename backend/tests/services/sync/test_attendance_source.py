"""
Tests for loading internal attendance facts.
"""

import pytest
from datetime import date
from unittest.mock import AsyncMock
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.models.class_session import ClassSession, StudentEnrollment
from app.schemas.sync import DateRange
from app.services.sync.attendance_source import (
    AttendanceFactLoader, PENDING_STATUS, compute_attendance_statuses
)
from app.services.sync.errors import InternalDataLoadError
from app.services.sync.types import AttendanceFact


JAN_13 = date(2025, 1, 13)
JAN_14 = date(2025, 1, 14)


class TestComputeAttendanceStatuses:
    """Test fact derivation from sessions and records."""

    def test_recorded_status_wins(self):
        facts = compute_attendance_statuses(["2"], {1: JAN_13}, {("2", 1): "late"}, today=JAN_14)

        assert facts == [AttendanceFact(student_key="2", date="2025-01-13", status="late")]

    def test_past_day_without_record_is_absent(self):
        facts = compute_attendance_statuses(["2"], {1: JAN_13}, {}, today=JAN_14)

        assert facts[0].status == "absent"

    def test_today_without_record_is_pending(self):
        facts = compute_attendance_statuses(["2", "3"], {1: JAN_14}, {("3", 1): "present"}, today=JAN_14)

        assert [fact.status for fact in facts] == [PENDING_STATUS, "present"]

    def test_ordered_by_session_then_roster(self):
        facts = compute_attendance_statuses(["3", "2"], {1: JAN_13, 2: JAN_14}, {}, today=date(2025, 2, 1))

        assert [(f.date, f.student_key) for f in facts] == [
            ("2025-01-13", "3"), ("2025-01-13", "2"),
            ("2025-01-14", "3"), ("2025-01-14", "2"),
        ]


class TestAttendanceFactLoader:
    """Test roster and fact loading from the database."""

    @pytest.mark.asyncio
    async def test_roster_ordered_by_name(self, db_session, classroom):
        roster = await AttendanceFactLoader(db_session).load_roster(1)

        assert [(s.student_id, s.display_name) for s in roster] == [
            ("3", "José García"), ("4", "Bob Jones"), ("2", "Ann Smith")
        ]

    @pytest.mark.asyncio
    async def test_withdrawn_students_are_not_on_roster(self, db_session, classroom):
        result = await db_session.execute(
            select(StudentEnrollment).where(StudentEnrollment.student_id == 2)
        )
        enrollment = result.scalar_one()
        enrollment.is_active = False
        await db_session.commit()

        roster = await AttendanceFactLoader(db_session).load_roster(1)

        assert "2" not in [s.student_id for s in roster]

    @pytest.mark.asyncio
    async def test_load_attendance_in_range(self, db_session, classroom):
        loader = AttendanceFactLoader(db_session)
        roster = await loader.load_roster(1)

        facts = await loader.load_attendance(
            1, DateRange(from_=JAN_13, to=JAN_13), roster, today=date(2025, 2, 1)
        )

        assert {(f.student_key, f.status) for f in facts} == {("2", "present"), ("3", "late"), ("4", "absent")}

    @pytest.mark.asyncio
    async def test_pending_facts_are_not_returned(self, db_session, classroom):
        loader = AttendanceFactLoader(db_session)
        roster = await loader.load_roster(1)

        facts = await loader.load_attendance(1, DateRange(from_=JAN_13, to=JAN_14), roster, today=JAN_14)

        # Bob has no record on the 14th, but it is still today
        assert ("4", "2025-01-14") not in {(f.student_key, f.date) for f in facts}
        assert ("4", "2025-01-13") in {(f.student_key, f.date) for f in facts}
        assert len(facts) == 5

    @pytest.mark.asyncio
    async def test_non_class_days_are_ignored(self, db_session, classroom):
        db_session.add(ClassSession(id=3, class_id=1, session_date=date(2025, 1, 15), is_class_day=False))
        await db_session.commit()
        loader = AttendanceFactLoader(db_session)
        roster = await loader.load_roster(1)

        facts = await loader.load_attendance(
            1, DateRange(from_=JAN_13, to=date(2025, 1, 15)), roster, today=date(2025, 2, 1)
        )

        assert "2025-01-15" not in {f.date for f in facts}

    @pytest.mark.asyncio
    async def test_database_errors_are_wrapped(self, db_session):
        db_session.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("locked")))

        with pytest.raises(InternalDataLoadError):
            await AttendanceFactLoader(db_session).load_roster(1)

    @pytest.mark.asyncio
    async def test_failed_reads_roll_back(self, db_session):
        db_session.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("locked")))
        db_session.rollback = AsyncMock()
        loader = AttendanceFactLoader(db_session)

        with pytest.raises(InternalDataLoadError):
            await loader.load_roster(1)
        with pytest.raises(InternalDataLoadError):
            await loader.load_attendance(1, DateRange(from_=JAN_13, to=JAN_14), [], today=JAN_14)

        assert db_session.rollback.await_count == 2
