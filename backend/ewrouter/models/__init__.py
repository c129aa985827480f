"""Pydantic models for classifications and constraints."""

from .classification import ClassificationResult, SessionHistoryEntry, PatternCacheEntry
from .constraints import Constraint, ConflictRecord, ConstraintInputError

__all__ = [
    "ClassificationResult",
    "SessionHistoryEntry",
    "PatternCacheEntry",
    "Constraint",
    "ConflictRecord",
    "ConstraintInputError",
]
