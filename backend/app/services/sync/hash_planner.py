"""
Hash Planner

Classifies each mapped operation as ``upsert`` or ``noop`` by comparing a
stable hash of its payload with the last hash persisted for the same entity.
Re-running against unchanged state therefore plans no external writes.
"""

import hashlib
import json
from typing import Any, Dict, Iterable, List, Mapping

from app.models.sync_metadata import SyncAction
from .types import MappedOperation, PlannedOperation


def hash_cache_key(entity_type: str, entity_key: str) -> str:
    return f"{entity_type}:{entity_key}"


def canonicalize_payload(payload: Any) -> str:
    """Serialize a payload so that key order never matters."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def compute_payload_hash(payload: Any) -> str:
    """SHA-256 hex digest of the canonical payload."""
    return hashlib.sha256(canonicalize_payload(payload).encode("utf-8")).hexdigest()


def plan_operations(
    mapped: Iterable[MappedOperation],
    known_hashes: Mapping[str, str]
) -> List[PlannedOperation]:
    """
    Plan operations against the hash cache.

    Args:
        mapped: Operations from the mapper
        known_hashes: ``entity_type:entity_key`` -> last persisted payload hash

    Returns:
        Planned operations, in input order
    """
    planned = []
    for op in mapped:
        payload_hash = compute_payload_hash(op.payload)
        previous = known_hashes.get(hash_cache_key(op.entity_type, op.entity_key))
        action = SyncAction.NOOP if previous == payload_hash else SyncAction.UPSERT
        planned.append(PlannedOperation(
            entity_type=op.entity_type,
            entity_key=op.entity_key,
            payload=op.payload,
            payload_hash=payload_hash,
            action=action.value
        ))
    return planned


def count_actions(planned: Iterable[PlannedOperation]) -> Dict[str, int]:
    counts = {SyncAction.UPSERT.value: 0, SyncAction.NOOP.value: 0}
    for op in planned:
        counts[op.action] += 1
    return counts
