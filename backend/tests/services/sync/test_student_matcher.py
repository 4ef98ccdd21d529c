"""
Tests for matching roster students to external name rows.
"""

import pytest
from rapidfuzz.distance import Levenshtein

from app.services.sync.student_matcher import (
    EXACT_CONFIDENCE,
    levenshtein_distance,
    levenshtein_similarity,
    match_students,
    parse_external_name,
    to_confidence,
)
from app.services.sync.types import ExternalNameRow, InternalStudent


def student(student_id, first, last):
    return InternalStudent(student_id=student_id, first_name=first, last_name=last)


def row(name, ref):
    return ExternalNameRow(name=name, external_row_reference=ref)


class TestLevenshtein:
    """Test the edit distance primitives."""

    @pytest.mark.parametrize("a,b,expected", [
        ("", "", 0),
        ("abc", "", 3),
        ("kitten", "sitting", 3),
        ("smith, jon", "smith, john", 1),
    ])
    def test_distance(self, a, b, expected):
        assert levenshtein_distance(a, b) == expected
        assert levenshtein_distance(b, a) == expected

    @pytest.mark.parametrize("a,b", [
        ("smith, jon", "smith, john"),
        ("garcia, jose", "garsia, josé"),
        ("jones, bob", "jones, robert"),
    ])
    def test_similarity_agrees_with_rapidfuzz(self, a, b):
        assert levenshtein_distance(a, b) == Levenshtein.distance(a, b)
        assert levenshtein_similarity(a, b) == pytest.approx(Levenshtein.normalized_similarity(a, b))

    def test_two_empty_strings_are_identical(self):
        assert levenshtein_similarity("", "") == 1.0

    def test_similarity_scales_by_longest(self):
        assert levenshtein_similarity("abcd", "abcx") == 0.75

    def test_confidence_rounds_half_up(self):
        assert to_confidence(0.125) == 13
        assert to_confidence(0.7857) == 79


class TestParseExternalName:
    """Test external "Last, First" parsing."""

    def test_splits_and_normalizes(self):
        assert parse_external_name("  GARCÍA ,  José ") == ("garcia", "jose")

    def test_name_without_comma(self):
        assert parse_external_name("Cher") == ("cher", "")


class TestMatchStudents:
    """Test exact-then-fuzzy greedy matching."""

    def test_exact_match_ignores_case_and_accents(self):
        results = match_students([student("3", "José", "García")], [row("Garcia, Jose", "att_1")])

        assert results[0].matched is True
        assert results[0].confidence == EXACT_CONFIDENCE
        assert results[0].external_row_reference == "att_1"
        assert results[0].external_name == "Garcia, Jose"

    def test_fuzzy_match_example(self):
        results = match_students([student("1", "Jon", "Smith")], [row("Smith, John", "att_1")])

        assert results[0].matched is True
        assert 80 <= results[0].confidence < 100
        assert results[0].confidence == 91

    def test_threshold_boundary_accepts_80(self):
        # "smith, ann" vs "smixx, ann": 2 edits over 10 characters
        results = match_students([student("1", "Ann", "Smith")], [row("Smixx, Ann", "att_1")])

        assert results[0].confidence == 80
        assert results[0].matched is True

    def test_threshold_boundary_rejects_79(self):
        # 3 edits over 14 characters
        results = match_students([student("1", "Hijkl", "Abcdefg")], [row("Abcdxyz, Hijkl", "att_1")])

        assert results[0].confidence == 79
        assert results[0].matched is False
        assert results[0].external_row_reference is None
        assert results[0].external_name is None

    def test_threshold_override(self):
        results = match_students(
            [student("1", "Hijkl", "Abcdefg")], [row("Abcdxyz, Hijkl", "att_1")], threshold=75
        )

        assert results[0].matched is True

    def test_exact_match_takes_precedence_over_earlier_fuzzy_claim(self):
        # Jon comes first and would fuzzily claim John's row without the exact pass
        results = match_students(
            [student("1", "Jon", "Smith"), student("2", "John", "Smith")],
            [row("Smith, John", "att_1")]
        )

        assert results[1].matched is True
        assert results[1].external_row_reference == "att_1"
        assert results[1].confidence == EXACT_CONFIDENCE
        assert results[0].matched is False

    def test_no_external_row_is_claimed_twice(self):
        internal = [
            student("1", "Jon", "Smith"),
            student("2", "John", "Smith"),
            student("3", "Jonn", "Smith"),
            student("4", "Joan", "Smith"),
        ]
        external = [row("Smith, John", "att_1"), row("Smith, Jonh", "att_2")]

        results = match_students(internal, external)

        references = [r.external_row_reference for r in results if r.external_row_reference]
        assert len(references) == len(set(references))
        assert sum(r.matched for r in results) == 2

    def test_ties_go_to_earlier_external_row(self):
        results = match_students(
            [student("1", "Ann", "Smith")],
            [row("Smitx, Ann", "att_1"), row("Smity, Ann", "att_2")]
        )

        assert results[0].external_row_reference == "att_1"

    def test_highest_confidence_row_wins(self):
        results = match_students(
            [student("1", "Ann", "Smith")],
            [row("Smxxx, Ann", "att_1"), row("Smitx, Ann", "att_2")]
        )

        assert results[0].external_row_reference == "att_2"

    def test_unmatched_reports_best_confidence(self):
        results = match_students([student("1", "Ann", "Smith")], [row("Jones, Bob", "att_1")])

        assert results[0].matched is False
        assert 0 < results[0].confidence < 80
        assert results[0].student_name == "Ann Smith"

    def test_one_result_per_student_in_input_order(self):
        internal = [student("9", "Zed", "Zulu"), student("1", "Ann", "Smith"), student("5", "Bob", "Jones")]
        external = [row("Jones, Bob", "att_1"), row("Smith, Ann", "att_2")]

        results = match_students(internal, external)

        assert [r.student_id for r in results] == ["9", "1", "5"]
        assert [r.matched for r in results] == [False, True, True]

    def test_empty_external_view(self):
        results = match_students([student("1", "Ann", "Smith")], [])

        assert results[0].matched is False
        assert results[0].confidence == 0
