"""
Attendance Sync Engine

One-way reconciliation of internal attendance into an external attendance
system. The pure pipeline stages are exported here:

- Student matching of roster students against external name rows
- Dataset validation of merged attendance rows
- Mapping of rows to canonical operations
- Hash planning of operations against the last persisted payloads

The orchestrator lives in ``app.services.sync.attendance_sync``.
"""

from .types import (
    InternalStudent,
    ExternalNameRow,
    MatchResult,
    AttendanceFact,
    ValidationIssue,
    MappedOperation,
    PlannedOperation,
    ExecutedOperation
)
from .student_matcher import match_students, levenshtein_distance, levenshtein_similarity
from .data_validator import DatasetValidator, validate_dataset, split_valid_rows
from .operation_mapper import map_dataset_to_operations
from .hash_planner import plan_operations, compute_payload_hash, canonicalize_payload, hash_cache_key

__all__ = [
    # Pipeline records
    'InternalStudent',
    'ExternalNameRow',
    'MatchResult',
    'AttendanceFact',
    'ValidationIssue',
    'MappedOperation',
    'PlannedOperation',
    'ExecutedOperation',
    
    # Pipeline stages
    'match_students',
    'levenshtein_distance',
    'levenshtein_similarity',
    'DatasetValidator',
    'validate_dataset',
    'split_valid_rows',
    'map_dataset_to_operations',
    'plan_operations',
    'compute_payload_hash',
    'canonicalize_payload',
    'hash_cache_key'
]
