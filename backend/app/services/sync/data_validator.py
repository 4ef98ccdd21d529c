"""
Dataset Validator

Checks normalized attendance rows before they are mapped to operations.
Validation is total: every row is either passed through unchanged or
reported with a reason, and nothing is raised. Callers decide whether a
reported row aborts the run or is recorded as a failed item.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from app.models.attendance import AttendanceStatus
from .types import ValidationIssue

logger = logging.getLogger(__name__)


REQUIRED_FIELDS = ("student_key", "date", "status")
SYNCABLE_STATUSES = frozenset(status.value for status in AttendanceStatus)


class DatasetValidator:
    """
    Field-level validator for canonical attendance rows.

    Each field check returns an error message or None.
    """

    def __init__(self, allowed_statuses: Iterable[str] = SYNCABLE_STATUSES):
        self.allowed_statuses = frozenset(allowed_statuses)

        self._validators: Dict[str, Callable[[Any], Optional[str]]] = {
            'student_key': self._validate_student_key,
            'date': self._validate_date,
            'status': self._validate_status,
        }

    def validate_row(self, row: Dict[str, Any]) -> Optional[str]:
        """Return the first problem found in ``row``, or None if it is valid."""
        missing = [name for name in REQUIRED_FIELDS if row.get(name) in (None, "")]
        if missing:
            return f"Missing required fields: {', '.join(missing)}"

        for field_name, check in self._validators.items():
            try:
                error = check(row.get(field_name))
            except Exception as e:
                error = f"Validation failed for {field_name}: {e}"
            if error:
                return error
        return None

    def validate(self, rows: Iterable[Dict[str, Any]]) -> List[ValidationIssue]:
        issues = []
        for row in rows:
            error = self.validate_row(row)
            if error:
                issues.append(ValidationIssue(row=row, error=error))

        if issues:
            logger.info(f"Dataset validation flagged {len(issues)} rows")
        return issues

    def split(self, rows: Iterable[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], List[ValidationIssue]]:
        """Partition rows into (valid rows, issues), preserving order."""
        valid = []
        issues = []
        for row in rows:
            error = self.validate_row(row)
            if error:
                issues.append(ValidationIssue(row=row, error=error))
            else:
                valid.append(row)
        return valid, issues

    def _validate_student_key(self, value: Any) -> Optional[str]:
        if not isinstance(value, str) or not value.strip():
            return "student_key must be a non-empty string"
        if ":" in value:
            return f"student_key '{value}' must not contain ':'"
        return None

    def _validate_date(self, value: Any) -> Optional[str]:
        try:
            parsed = date.fromisoformat(str(value))
        except ValueError:
            return f"Invalid date '{value}', expected YYYY-MM-DD"
        if parsed.isoformat() != str(value):
            return f"Invalid date '{value}', expected YYYY-MM-DD"
        return None

    def _validate_status(self, value: Any) -> Optional[str]:
        if value not in self.allowed_statuses:
            allowed = ", ".join(sorted(self.allowed_statuses))
            return f"Invalid status '{value}', expected one of: {allowed}"
        return None


_default_validator = DatasetValidator()


def validate_dataset(rows: Iterable[Dict[str, Any]]) -> List[ValidationIssue]:
    """Report every invalid row as a ValidationIssue."""
    return _default_validator.validate(rows)


def split_valid_rows(rows: Iterable[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], List[ValidationIssue]]:
    """Partition rows into valid rows and issues."""
    return _default_validator.split(rows)
