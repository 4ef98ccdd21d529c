"""
Canonical form of person names for cross-system comparison.
"""

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """
    Lowercase, strip diacritics and collapse whitespace.

    >>> normalize_name("  José   García ")
    'jose garcia'
    """
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", stripped.lower()).strip()


def canonical_last_first(first_name: str, last_name: str) -> str:
    """Normalized "last, first" form used by the external roster."""
    return f"{normalize_name(last_name)}, {normalize_name(first_name)}"
