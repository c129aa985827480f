"""
Constraint resolver entry points.

normalizer -> conflict detector -> priority arbiter -> assembler.

Input errors (unparsable JSON, non-object elements, missing required fields,
duplicate ids) produce {"error": message} with no conflicts/resolved_set.
"""
import json
import time
from typing import Any, Dict, Optional

from ewrouter.core.logging import get_logger
from ewrouter.core.metrics import record_conflict, record_constraint_input_error
from ewrouter.models.constraints import ConstraintInputError
from ewrouter.services.constraints.arbiter import PriorityArbiter
from ewrouter.services.constraints.assembler import assemble
from ewrouter.services.constraints.detector import ConflictDetector
from ewrouter.services.constraints.normalizer import normalize_constraint_input, parse_constraints

logger = get_logger(__name__)


class ConstraintResolver:
    """Detects and arbitrates conflicts among domain constraints."""

    def __init__(
        self,
        detector: Optional[ConflictDetector] = None,
        arbiter: Optional[PriorityArbiter] = None,
    ):
        self.detector = detector or ConflictDetector()
        self.arbiter = arbiter or PriorityArbiter()

    def resolve_strict(self, payload: Any) -> Dict[str, Any]:
        """
        Resolve constraints, raising on malformed input.

        Raises:
            ConstraintInputError
        """
        constraints = parse_constraints(normalize_constraint_input(payload))
        detected = self.detector.detect(constraints)
        conflicts = self.arbiter.arbitrate_all(detected, constraints)

        for record in conflicts:
            record_conflict(record.type, record.resolution)

        return assemble(constraints, conflicts, self.arbiter.lattice.version)

    def resolve(self, payload: Any) -> Dict[str, Any]:
        """
        Resolve constraints.

        Args:
            payload: Bare list or {"constraints": [...]}

        Returns:
            Resolver output, or {"error": message} on input errors
        """
        start_time = time.time()
        try:
            output = self.resolve_strict(payload)
        except ConstraintInputError as e:
            record_constraint_input_error()
            logger.warning("constraint_input_invalid", error=str(e))
            return {"error": str(e)}

        metadata = output["metadata"]
        logger.info(
            "constraints_resolved",
            total_declared=metadata["total_declared"],
            total_accepted=metadata["total_accepted"],
            total_conflicts=metadata["total_conflicts"],
            total_unresolved=metadata["total_unresolved"],
            latency_ms=int((time.time() - start_time) * 1000),
        )
        return output

    def resolve_json(self, text: str) -> Dict[str, Any]:
        """Resolve constraints from a JSON document."""
        try:
            payload = json.loads(text)
        except (TypeError, ValueError) as e:
            record_constraint_input_error()
            logger.warning("constraint_input_unparsable", error=str(e))
            return {"error": f"Invalid JSON in constraints input: {e}"}
        return self.resolve(payload)


_constraint_resolver: Optional[ConstraintResolver] = None


def get_constraint_resolver() -> ConstraintResolver:
    """
    Get global constraint resolver instance.

    Returns:
        ConstraintResolver instance
    """
    global _constraint_resolver

    if _constraint_resolver is None:
        _constraint_resolver = ConstraintResolver()

    return _constraint_resolver


def resolve(payload: Any) -> Dict[str, Any]:
    return get_constraint_resolver().resolve(payload)


def resolve_json(text: str) -> Dict[str, Any]:
    return get_constraint_resolver().resolve_json(text)
