"""
Dataset Normalizer

Cleans merged attendance rows (internal facts joined with external match
information) into the canonical shape consumed by the validator and mapper.
Rows too broken to identify are dropped and logged; everything else is passed
on, possibly still invalid, for the validator to judge.
"""

import logging
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from app.integrations.teachassist.base import ATTENDANCE_CODES
from app.models.attendance import AttendanceStatus

logger = logging.getLogger(__name__)


_STATUS_ALIASES: Dict[str, str] = {
    "present": AttendanceStatus.PRESENT.value,
    "late": AttendanceStatus.LATE.value,
    "tardy": AttendanceStatus.LATE.value,
    "absent": AttendanceStatus.ABSENT.value,
    "excused": AttendanceStatus.EXCUSED.value,
    "excused absence": AttendanceStatus.EXCUSED.value,
}


def normalize_status(value: Any) -> Optional[str]:
    """
    Map internal or external status vocabulary onto the internal enum value.

    Unknown values come back trimmed and lowercased so the validator can
    report them; missing values come back as None.
    """
    if value is None:
        return None
    if isinstance(value, AttendanceStatus):
        return value.value
    text = " ".join(str(value).split())
    if not text:
        return None
    if text.upper() in ATTENDANCE_CODES:
        return ATTENDANCE_CODES[text.upper()]
    return _STATUS_ALIASES.get(text.lower(), text.lower())


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _clean_date(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return _clean_text(value)


def normalize_row(row: Any) -> Optional[Dict[str, Any]]:
    """Normalize a single row, or return None when it cannot be keyed."""
    if not isinstance(row, Mapping):
        logger.warning(f"Dropping non-mapping attendance row of type {type(row).__name__}")
        return None

    student_key = _clean_text(row.get("student_key", row.get("student_id")))
    if student_key is None:
        logger.warning("Dropping attendance row without a student key")
        return None

    return {
        "student_key": student_key,
        "date": _clean_date(row.get("date")),
        "status": normalize_status(row.get("status")),
        "external_row_reference": _clean_text(row.get("external_row_reference")),
        "student_name": _clean_text(row.get("student_name")) or "",
    }


def normalize_dataset(rows: Iterable[Any]) -> List[Dict[str, Any]]:
    """Normalize every row, dropping the unrecoverable ones."""
    normalized = []
    dropped = 0
    for row in rows:
        clean = normalize_row(row)
        if clean is None:
            dropped += 1
            continue
        normalized.append(clean)

    if dropped:
        logger.info(f"Dataset normalizer dropped {dropped} structurally invalid rows")
    return normalized
