"""Constraint resolution services for conflicts between domain constraints."""

from .resolver import ConstraintResolver, resolve, resolve_json

__all__ = ["ConstraintResolver", "resolve", "resolve_json"]
