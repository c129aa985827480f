"""
Constraint input normalization.

Constraints arrive either as a bare list or wrapped as {"constraints": [...]}.
The shape is resolved once, here; everything downstream only sees the flat
list of Constraint models.
"""
from typing import Any, Dict, List

from pydantic import ValidationError

from ewrouter.core.logging import get_logger
from ewrouter.models.constraints import Constraint, ConstraintInputError

logger = get_logger(__name__)

WRAPPER_FIELD = "constraints"


def normalize_constraint_input(payload: Any) -> List[Any]:
    """
    Flatten accepted constraint input shapes.

    Returns:
        The constraint list; [] for null, a missing wrapper field or any other shape
    """
    if isinstance(payload, list):
        return list(payload)
    if isinstance(payload, dict):
        wrapped = payload.get(WRAPPER_FIELD)
        if isinstance(wrapped, list):
            return list(wrapped)
    return []


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "constraint"
    return f"{location}: {first.get('msg', 'invalid value')}"


def parse_constraints(raw: List[Any]) -> List[Constraint]:
    """
    Validate a flat constraint list.

    Elements without an id get a positional one ("c-<index>").

    Raises:
        ConstraintInputError: non-object element, missing required field or duplicate id
    """
    constraints: List[Constraint] = []
    seen_ids: Dict[str, int] = {}

    for index, item in enumerate(raw):
        if isinstance(item, Constraint):
            constraint = item
        else:
            if not isinstance(item, dict):
                raise ConstraintInputError(
                    f"Constraint at index {index} must be an object, got {type(item).__name__}"
                )
            data = dict(item)
            if data.get("id") in (None, ""):
                data["id"] = f"c-{index}"
            try:
                constraint = Constraint.model_validate(data)
            except ValidationError as exc:
                raise ConstraintInputError(
                    f"Invalid constraint at index {index}: {_first_error(exc)}"
                ) from exc

        if constraint.id in seen_ids:
            raise ConstraintInputError(
                f"Duplicate constraint id '{constraint.id}' at index {index} "
                f"(first seen at index {seen_ids[constraint.id]})"
            )
        seen_ids[constraint.id] = index
        constraints.append(constraint)

    logger.debug("constraints_parsed", count=len(constraints))
    return constraints
