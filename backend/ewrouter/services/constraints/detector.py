"""
Conflict detection.

Structural: constraints on the same target (case-insensitive) with more than
one distinct value. One record per target, covering every constraint on it.

Semantic: constraints on related targets whose values contradict each other
according to a fixed topic-adjacency table. One record per contradicting pair.

Constraints without a conflicting partner are not wrapped in any record.
"""
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from ewrouter.core.logging import get_logger
from ewrouter.models.constraints import (
    CONFLICT_SEMANTIC,
    CONFLICT_STRUCTURAL,
    ConflictRecord,
    Constraint,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class AdjacencyRule:
    """Two related targets and the value sets that contradict each other."""

    topic: str
    left_targets: FrozenSet[str]
    left_values: FrozenSet[str]
    right_targets: FrozenSet[str]
    right_values: FrozenSet[str]

    def _side_matches(self, targets: FrozenSet[str], values: FrozenSet[str], constraint: Constraint) -> bool:
        value = plain_value(constraint.value)
        return constraint.target_key in targets and value is not None and value in values

    def contradicts(self, a: Constraint, b: Constraint) -> bool:
        forward = (
            self._side_matches(self.left_targets, self.left_values, a)
            and self._side_matches(self.right_targets, self.right_values, b)
        )
        backward = (
            self._side_matches(self.left_targets, self.left_values, b)
            and self._side_matches(self.right_targets, self.right_values, a)
        )
        return forward or backward


def plain_value(value: Any) -> Optional[str]:
    """Trimmed, case-folded string value; None for non-string values."""
    if isinstance(value, str):
        return value.strip().casefold()
    return None


_STRONG_CONSISTENCY = frozenset({"strong", "linearizable", "serializable", "strict"})
_LOW_LATENCY = frozenset({"low", "minimal", "ultra-low", "sub-millisecond"})

ADJACENCY_RULES: Tuple[AdjacencyRule, ...] = (
    AdjacencyRule(
        topic="consistency-vs-latency",
        left_targets=frozenset({"consistency"}),
        left_values=_STRONG_CONSISTENCY,
        right_targets=frozenset({"latency", "read_latency", "write_latency"}),
        right_values=_LOW_LATENCY,
    ),
    AdjacencyRule(
        topic="durability-vs-latency",
        left_targets=frozenset({"durability", "replication"}),
        left_values=frozenset({"synchronous", "sync", "fsync-per-write", "strict"}),
        right_targets=frozenset({"latency", "write_latency"}),
        right_values=_LOW_LATENCY,
    ),
    AdjacencyRule(
        topic="isolation-vs-throughput",
        left_targets=frozenset({"isolation", "isolation_level"}),
        left_values=frozenset({"serializable"}),
        right_targets=frozenset({"throughput", "write_throughput"}),
        right_values=frozenset({"high", "maximum", "max"}),
    ),
    AdjacencyRule(
        topic="caching-vs-consistency",
        left_targets=frozenset({"caching", "cache_strategy"}),
        left_values=frozenset({"aggressive", "write-back", "long-ttl"}),
        right_targets=frozenset({"consistency"}),
        right_values=_STRONG_CONSISTENCY,
    ),
    AdjacencyRule(
        topic="availability-vs-consistency",
        left_targets=frozenset({"availability"}),
        left_values=frozenset({"high", "always-on", "99.99%", "99.999%"}),
        right_targets=frozenset({"consistency"}),
        right_values=_STRONG_CONSISTENCY,
    ),
)


class ConflictDetector:
    """Finds structural and semantic conflicts among normalized constraints."""

    def __init__(self, rules: Tuple[AdjacencyRule, ...] = ADJACENCY_RULES):
        self.rules = rules

    def related_rule(self, a: Constraint, b: Constraint) -> Optional[AdjacencyRule]:
        """First adjacency rule under which a and b contradict, if any."""
        if a.target_key == b.target_key:
            return None
        return next((r for r in self.rules if r.contradicts(a, b)), None)

    def structural(self, constraints: List[Constraint]) -> List[ConflictRecord]:
        groups: Dict[str, List[Constraint]] = {}
        for constraint in constraints:
            groups.setdefault(constraint.target_key, []).append(constraint)

        records = []
        for members in groups.values():
            if len({c.value_key for c in members}) < 2:
                continue
            records.append(
                ConflictRecord(
                    conflict_id="",
                    constraint_ids=[c.id for c in members],
                    type=CONFLICT_STRUCTURAL,
                    targets=[members[0].target],
                )
            )
        return records

    def semantic(self, constraints: List[Constraint]) -> List[ConflictRecord]:
        records = []
        for i, a in enumerate(constraints):
            for b in constraints[i + 1:]:
                rule = self.related_rule(a, b)
                if rule is None:
                    continue
                records.append(
                    ConflictRecord(
                        conflict_id="",
                        constraint_ids=[a.id, b.id],
                        type=CONFLICT_SEMANTIC,
                        targets=[a.target, b.target],
                        rationale=f"Contradictory intent ({rule.topic})",
                    )
                )
        return records

    def detect(self, constraints: List[Constraint]) -> List[ConflictRecord]:
        """
        Detect all conflicts.

        Returns:
            Structural records (by first appearance of target) followed by
            semantic records (by pair order), with sequential conflict ids
        """
        records = self.structural(constraints) + self.semantic(constraints)
        numbered = [
            record.model_copy(update={"conflict_id": f"cf-{index}"})
            for index, record in enumerate(records, start=1)
        ]
        logger.debug(
            "conflicts_detected",
            constraints=len(constraints),
            structural=sum(1 for r in numbered if r.type == CONFLICT_STRUCTURAL),
            semantic=sum(1 for r in numbered if r.type == CONFLICT_SEMANTIC),
        )
        return numbered
