"""
Records passed between the stages of the attendance sync pipeline.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class InternalStudent:
    """A student on the internal roster."""
    student_id: str
    first_name: str
    last_name: str

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class ExternalNameRow:
    """A student row read from the external attendance view."""
    name: str  # "Last, First"
    external_row_reference: str


@dataclass
class MatchResult:
    """Alignment of one internal student with at most one external row."""
    student_id: str
    matched: bool
    external_name: Optional[str]
    external_row_reference: Optional[str]
    confidence: int
    student_name: str = ""


@dataclass(frozen=True)
class AttendanceFact:
    """Internally computed attendance for one student on one class day."""
    student_key: str
    date: str
    status: str


@dataclass
class ValidationIssue:
    """A normalized row the validator refused, with the reason."""
    row: Dict[str, Any]
    error: str


@dataclass
class MappedOperation:
    """Canonical operation keyed by entity type and entity key."""
    entity_type: str
    entity_key: str
    payload: Dict[str, Any]


@dataclass
class PlannedOperation(MappedOperation):
    """Mapped operation classified against the last persisted hash."""
    payload_hash: str = ""
    action: str = "upsert"

    @property
    def cache_key(self) -> str:
        return f"{self.entity_type}:{self.entity_key}"


@dataclass
class ExecutedOperation:
    """What happened to one planned operation during a run."""
    entity_type: str
    entity_key: str
    status: str
    action: Optional[str] = None
    payload_hash: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    detail: Optional[str] = None

    @classmethod
    def from_planned(cls, op: PlannedOperation, status: str, detail: Optional[str] = None) -> "ExecutedOperation":
        return cls(
            entity_type=op.entity_type,
            entity_key=op.entity_key,
            status=status,
            action=op.action,
            payload_hash=op.payload_hash,
            payload=dict(op.payload),
            detail=detail,
        )
