"""
Shared fixtures for the attendance sync engine tests.
"""

from datetime import date
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from app.core.database import build_session_factory, init_db, make_engine
from app.core.security import CredentialCipher
from app.models.attendance import AttendanceRecord, AttendanceStatus
from app.models.class_session import Class, ClassSession, StudentEnrollment
from app.models.user import User, UserRole
from app.services.sync.config_service import ExternalConfigService
from app.services.sync.types import ExternalNameRow


TEACHASSIST_PASSWORD = "s3cret-pass"


class FakeAttendanceDriver:
    """In-memory stand-in for the TeachAssist browser driver."""

    def __init__(self, rows: Optional[List[ExternalNameRow]] = None):
        self.rows = list(rows or [])
        self.rows_by_date: Dict[str, List[ExternalNameRow]] = {}
        self.login_error: Optional[Exception] = None
        self.navigation_errors: Dict[str, Exception] = {}
        self.record_errors: Dict[str, Exception] = {}

        self.launched = 0
        self.closed = 0
        self.credentials = None
        self.course = None
        self.current_date: Optional[str] = None
        self.visited: List[str] = []
        self.recorded: List[tuple] = []

    async def launch_browser(self) -> Any:
        self.launched += 1
        return {"session": self.launched}

    async def create_page(self, session: Any) -> Any:
        return {"page": session}

    async def login_to_external_system(self, page: Any, credentials) -> None:
        self.credentials = credentials
        if self.login_error:
            raise self.login_error

    async def select_course(self, page: Any, course_identifier: str) -> None:
        self.course = course_identifier

    async def navigate_to_attendance_view(self, page: Any, date: str) -> None:
        self.visited.append(date)
        if date in self.navigation_errors:
            raise self.navigation_errors[date]
        self.current_date = date

    async def read_attendance_rows(self, page: Any) -> List[ExternalNameRow]:
        return list(self.rows_by_date.get(self.current_date, self.rows))

    async def record_attendance_for_row(self, page: Any, external_row_reference: str, status: str) -> None:
        if external_row_reference in self.record_errors:
            raise self.record_errors[external_row_reference]
        self.recorded.append((self.current_date, external_row_reference, status))

    async def close_browser(self, session: Any) -> None:
        self.closed += 1


@pytest_asyncio.fixture
async def db_session():
    """Session on a fresh in-memory database with every table created."""
    engine = make_engine("sqlite+aiosqlite://", echo=False)
    await init_db(engine)

    session_factory = build_session_factory(engine)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def cipher():
    return CredentialCipher(Fernet.generate_key())


@pytest_asyncio.fixture
async def classroom(db_session, cipher):
    """
    Classroom 1 with three students and two past class days.

    Recorded attendance:
        2025-01-13: Ann present, José late, Bob (no record -> absent)
        2025-01-14: Ann absent, José present, Bob excused
    """
    teacher = User(id=1, email="teacher@school.test", first_name="Grace", last_name="Hopper", role=UserRole.TEACHER)
    ann = User(id=2, email="ann@school.test", first_name="Ann", last_name="Smith")
    jose = User(id=3, email="jose@school.test", first_name="José", last_name="García")
    bob = User(id=4, email="bob@school.test", first_name="Bob", last_name="Jones")
    db_session.add_all([teacher, ann, jose, bob])

    db_session.add(Class(id=1, name="Career Studies", teacher_id=1))
    db_session.add_all([
        StudentEnrollment(student_id=student.id, class_id=1, is_active=True)
        for student in (ann, jose, bob)
    ])

    monday = ClassSession(id=1, class_id=1, session_date=date(2025, 1, 13))
    tuesday = ClassSession(id=2, class_id=1, session_date=date(2025, 1, 14))
    db_session.add_all([monday, tuesday])

    db_session.add_all([
        AttendanceRecord(student_id=2, class_session_id=1, status=AttendanceStatus.PRESENT),
        AttendanceRecord(student_id=3, class_session_id=1, status=AttendanceStatus.LATE),
        AttendanceRecord(student_id=2, class_session_id=2, status=AttendanceStatus.ABSENT),
        AttendanceRecord(student_id=3, class_session_id=2, status=AttendanceStatus.PRESENT),
        AttendanceRecord(student_id=4, class_session_id=2, status=AttendanceStatus.EXCUSED),
    ])
    await db_session.commit()

    await ExternalConfigService(db_session, cipher).save_config(
        classroom_id=1,
        username="teacher01",
        course_search="GLC2O",
        block="A1",
        password=TEACHASSIST_PASSWORD
    )
    return {"classroom_id": 1, "teacher_id": 1}


@pytest.fixture
def external_rows():
    return [
        ExternalNameRow(name="Smith, Ann", external_row_reference="att_2001"),
        ExternalNameRow(name="Garcia, Jose", external_row_reference="att_2002"),
        ExternalNameRow(name="Jones, Bob", external_row_reference="att_2003"),
    ]


@pytest.fixture
def fake_driver(external_rows):
    return FakeAttendanceDriver(rows=external_rows)
