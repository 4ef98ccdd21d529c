"""
Utility modules for the Attendance Sync Engine.
"""

from .name_normalization import normalize_name, canonical_last_first

__all__ = [
    "normalize_name",
    "canonical_last_first"
]
