"""
Operation Mapper

Turns validated attendance rows into canonical operations, one per
(entity_type, entity_key). When a key repeats, the later row wins.
"""

from typing import Any, Dict, Iterable, List

from app.models.sync_metadata import SyncEntityType
from .types import MappedOperation


def attendance_entity_key(student_key: str, date: str) -> str:
    return f"{student_key}:{date}"


def map_dataset_to_operations(rows: Iterable[Dict[str, Any]]) -> List[MappedOperation]:
    operations: Dict[str, MappedOperation] = {}

    for row in rows:
        entity_key = attendance_entity_key(row["student_key"], row["date"])
        operations[entity_key] = MappedOperation(
            entity_type=SyncEntityType.ATTENDANCE.value,
            entity_key=entity_key,
            payload={
                "student_key": row["student_key"],
                "date": row["date"],
                "status": row["status"],
            }
        )

    return list(operations.values())
