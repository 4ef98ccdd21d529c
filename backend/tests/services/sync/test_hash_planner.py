"""
Tests for payload hashing and upsert/noop planning.
"""

from app.services.sync.hash_planner import (
    canonicalize_payload,
    compute_payload_hash,
    count_actions,
    hash_cache_key,
    plan_operations,
)
from app.services.sync.types import MappedOperation


def operation(entity_key="2:2025-01-13", **payload):
    return MappedOperation(
        entity_type="attendance",
        entity_key=entity_key,
        payload=payload or {"status": "present"}
    )


class TestPayloadHash:
    """Test hash stability."""

    def test_key_order_does_not_matter(self):
        first = {"student_key": "2", "date": "2025-01-13", "status": "present"}
        second = {"status": "present", "date": "2025-01-13", "student_key": "2"}

        assert canonicalize_payload(first) == canonicalize_payload(second)
        assert compute_payload_hash(first) == compute_payload_hash(second)

    def test_nested_key_order_does_not_matter(self):
        assert compute_payload_hash({"a": {"x": 1, "y": 2}}) == compute_payload_hash({"a": {"y": 2, "x": 1}})

    def test_different_values_hash_differently(self):
        assert compute_payload_hash({"status": "present"}) != compute_payload_hash({"status": "late"})

    def test_hash_is_sha256_hex(self):
        payload_hash = compute_payload_hash({"status": "present"})

        assert len(payload_hash) == 64
        int(payload_hash, 16)

    def test_canonical_form_is_compact(self):
        assert canonicalize_payload({"b": 1, "a": "é"}) == '{"a":"é","b":1}'


class TestPlanOperations:
    """Test classification against the hash cache."""

    def test_no_prior_hash_is_upsert(self):
        planned = plan_operations([operation(status="present")], {})

        assert planned[0].action == "upsert"
        assert planned[0].payload_hash == compute_payload_hash({"status": "present"})

    def test_matching_prior_hash_is_noop(self):
        known = {"attendance:2:2025-01-13": compute_payload_hash({"status": "present"})}

        planned = plan_operations([operation(status="present")], known)

        assert planned[0].action == "noop"

    def test_changed_payload_is_upsert(self):
        known = {"attendance:2:2025-01-13": compute_payload_hash({"status": "present"})}

        planned = plan_operations([operation(status="late")], known)

        assert planned[0].action == "upsert"

    def test_hashes_of_other_entities_are_ignored(self):
        known = {"attendance:3:2025-01-13": compute_payload_hash({"status": "present"})}

        planned = plan_operations([operation(status="present")], known)

        assert planned[0].action == "upsert"

    def test_replanning_own_output_is_all_noop(self):
        mapped = [operation("2:2025-01-13", status="present"), operation("3:2025-01-13", status="late")]
        first = plan_operations(mapped, {})
        known = {op.cache_key: op.payload_hash for op in first}

        second = plan_operations(mapped, known)

        assert all(op.action == "noop" for op in second)
        assert count_actions(second) == {"upsert": 0, "noop": 2}

    def test_preserves_input_order(self):
        mapped = [operation("3:2025-01-13"), operation("1:2025-01-13"), operation("2:2025-01-13")]

        assert [op.entity_key for op in plan_operations(mapped, {})] == ["3:2025-01-13", "1:2025-01-13", "2:2025-01-13"]

    def test_cache_key_format(self):
        assert hash_cache_key("attendance", "2:2025-01-13") == "attendance:2:2025-01-13"
        assert plan_operations([operation()], {})[0].cache_key == "attendance:2:2025-01-13"
