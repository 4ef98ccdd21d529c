"""
Student Matcher

Aligns internal roster students with the name rows shown by the external
attendance view. The two systems share no identifier, so alignment is done
on normalized names:

1. Exact pass: a student whose normalized "last, first" equals an unclaimed
   external row claims it with confidence 100.
2. Fuzzy pass: remaining students, in roster order, claim the unclaimed row
   with the highest Levenshtein similarity, provided the confidence reaches
   the threshold.

A claimed row is never offered again, so no external row is matched twice.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from app.core.config import settings
from app.utils.name_normalization import normalize_name, canonical_last_first
from .types import ExternalNameRow, InternalStudent, MatchResult

logger = logging.getLogger(__name__)

EXACT_CONFIDENCE = 100


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character edits turning ``a`` into ``b``."""
    return Levenshtein.distance(a, b)


def levenshtein_similarity(a: str, b: str) -> float:
    """Similarity in [0, 1]; two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1 - levenshtein_distance(a, b) / longest


def to_confidence(similarity: float) -> int:
    """Scale a similarity to 0-100, rounding halves up."""
    return int(similarity * 100 + 0.5)


def parse_external_name(name: str) -> Tuple[str, str]:
    """Split an external "Last, First" name into normalized (last, first)."""
    last, sep, first = name.partition(",")
    if not sep:
        return normalize_name(name), ""
    return normalize_name(last), normalize_name(first)


def external_match_key(name: str) -> str:
    last, first = parse_external_name(name)
    return f"{last}, {first}"


def match_students(
    internal: Sequence[InternalStudent],
    external: Iterable[ExternalNameRow],
    threshold: Optional[int] = None
) -> List[MatchResult]:
    """
    Match internal students to external rows.

    Args:
        internal: Roster students, in the order results are wanted
        external: Rows from the external view; their order breaks ties
        threshold: Minimum fuzzy confidence (0-100) to accept a match

    Returns:
        One MatchResult per internal student, in input order
    """
    if threshold is None:
        threshold = settings.SYNC_MATCH_THRESHOLD

    rows = list(external)
    row_keys = [external_match_key(row.name) for row in rows]
    student_keys = [canonical_last_first(s.first_name, s.last_name) for s in internal]
    claimed = set()
    results: List[Optional[MatchResult]] = [None] * len(internal)

    # Exact pass drains completely before any fuzzy claim is made
    for si, student in enumerate(internal):
        for ri, row in enumerate(rows):
            if ri in claimed or row_keys[ri] != student_keys[si]:
                continue
            claimed.add(ri)
            results[si] = MatchResult(
                student_id=student.student_id,
                matched=True,
                external_name=row.name,
                external_row_reference=row.external_row_reference,
                confidence=EXACT_CONFIDENCE,
                student_name=student.display_name
            )
            break

    for si, student in enumerate(internal):
        if results[si] is not None:
            continue

        best_index = -1
        best_confidence = 0
        for ri in range(len(rows)):
            if ri in claimed:
                continue
            confidence = to_confidence(levenshtein_similarity(student_keys[si], row_keys[ri]))
            # Strict comparison keeps the earliest row on ties
            if best_index < 0 or confidence > best_confidence:
                best_index = ri
                best_confidence = confidence

        if best_index >= 0 and best_confidence >= threshold:
            claimed.add(best_index)
            row = rows[best_index]
            results[si] = MatchResult(
                student_id=student.student_id,
                matched=True,
                external_name=row.name,
                external_row_reference=row.external_row_reference,
                confidence=best_confidence,
                student_name=student.display_name
            )
        else:
            logger.debug(
                f"No external row for student {student.student_id} "
                f"(best confidence {best_confidence})"
            )
            results[si] = MatchResult(
                student_id=student.student_id,
                matched=False,
                external_name=None,
                external_row_reference=None,
                confidence=best_confidence,
                student_name=student.display_name
            )

    return results
