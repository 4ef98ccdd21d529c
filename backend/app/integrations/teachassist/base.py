"""
Capability interface the sync engine uses to drive the external attendance system.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Protocol, runtime_checkable

from app.core.teachassist_config import TeachAssistCredentials
from app.models.attendance import AttendanceStatus
from app.services.sync.types import ExternalNameRow


# TeachAssist radio values and the internal status each one means
ATTENDANCE_CODES: Dict[str, str] = {
    "P": AttendanceStatus.PRESENT.value,
    "L": AttendanceStatus.LATE.value,
    "A": AttendanceStatus.ABSENT.value,
    "E": AttendanceStatus.EXCUSED.value,
}

STATUS_TO_CODE: Dict[str, str] = {status: code for code, status in ATTENDANCE_CODES.items()}


def to_external_code(status: str) -> str:
    """External radio code for an internal status."""
    try:
        return STATUS_TO_CODE[status]
    except KeyError:
        raise ValueError(f"No external attendance code for status '{status}'") from None


@runtime_checkable
class ExternalAttendanceDriver(Protocol):
    """Protocol every external attendance driver must follow."""
    
    async def launch_browser(self) -> Any:
        """Start a browser session held exclusively by one job."""
        ...
    
    async def create_page(self, session: Any) -> Any:
        """Open a page in the session."""
        ...
    
    async def login_to_external_system(self, page: Any, credentials: TeachAssistCredentials) -> None:
        """Authenticate; raises on rejected credentials."""
        ...
    
    async def select_course(self, page: Any, course_identifier: str) -> None:
        """Open the course whose label contains ``course_identifier``."""
        ...
    
    async def navigate_to_attendance_view(self, page: Any, date: str) -> None:
        """Show the attendance form for ``date`` (YYYY-MM-DD)."""
        ...
    
    async def read_attendance_rows(self, page: Any) -> List[ExternalNameRow]:
        """Read the student rows of the current attendance form."""
        ...
    
    async def record_attendance_for_row(self, page: Any, external_row_reference: str, status: str) -> None:
        """Record an internal ``status`` for one row."""
        ...
    
    async def close_browser(self, session: Any) -> None:
        """Release the session."""
        ...


class BaseExternalAttendanceDriver(ABC):
    """Base class for driver implementations."""
    
    name = "external"
    
    @abstractmethod
    async def launch_browser(self) -> Any:
        pass
    
    @abstractmethod
    async def create_page(self, session: Any) -> Any:
        pass
    
    @abstractmethod
    async def login_to_external_system(self, page: Any, credentials: TeachAssistCredentials) -> None:
        pass
    
    @abstractmethod
    async def select_course(self, page: Any, course_identifier: str) -> None:
        pass
    
    @abstractmethod
    async def navigate_to_attendance_view(self, page: Any, date: str) -> None:
        pass
    
    @abstractmethod
    async def read_attendance_rows(self, page: Any) -> List[ExternalNameRow]:
        pass
    
    @abstractmethod
    async def record_attendance_for_row(self, page: Any, external_row_reference: str, status: str) -> None:
        pass
    
    @abstractmethod
    async def close_browser(self, session: Any) -> None:
        pass
