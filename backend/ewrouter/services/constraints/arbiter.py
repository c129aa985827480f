"""
Priority arbitration.

A single versioned PriorityLattice holds every ordering the resolver uses:
- category order (what a constraint protects), independent of its emitter
- domain order (who emitted it), used when categories tie

Arbitration per conflict:
1. Any member without a known category -> the single hard member wins over
   the soft ones (resolved-priority); with no hard member or several, the
   conflict is unresolved (no value picked)
2. Otherwise rank members by category, domain, priority hint (hard before
   soft), then input order
3. Top member strictly ahead of the runner-up on category or domain ->
   resolved-priority; a tie on both -> resolved-auto
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ewrouter.core.logging import get_logger
from ewrouter.models.constraints import (
    RESOLUTION_AUTO,
    RESOLUTION_PRIORITY,
    RESOLUTION_UNRESOLVED,
    ConflictRecord,
    Constraint,
)

logger = get_logger(__name__)

LATTICE_VERSION = "1.0"

CATEGORY_ORDER: Tuple[str, ...] = (
    "security",
    "data_integrity",
    "compliance",
    "availability",
    "performance",
    "maintainability",
    "cost",
)

DOMAIN_ORDER: Tuple[str, ...] = ("SE", "DB", "BE", "IF")

# (target, value) -> category; checked before the target-only table
VALUE_CATEGORIES: Dict[Tuple[str, str], str] = {
    ("consistency", "strong"): "data_integrity",
    ("consistency", "linearizable"): "data_integrity",
    ("consistency", "serializable"): "data_integrity",
    ("consistency", "eventual"): "availability",
    ("consistency", "causal"): "availability",
    ("isolation", "serializable"): "data_integrity",
    ("isolation", "read-committed"): "performance",
    ("replication", "synchronous"): "data_integrity",
    ("replication", "asynchronous"): "performance",
    ("caching", "aggressive"): "performance",
    ("caching", "none"): "data_integrity",
    ("availability", "high"): "availability",
    ("encryption", "at-rest"): "security",
    ("encryption", "none"): "cost",
}

TARGET_CATEGORIES: Dict[str, str] = {
    "authentication": "security",
    "authorization": "security",
    "encryption": "security",
    "token_storage": "security",
    "access_token_ttl": "security",
    "tenant_isolation": "security",
    "secrets": "security",
    "durability": "data_integrity",
    "idempotency": "data_integrity",
    "key_generation": "data_integrity",
    "transaction": "data_integrity",
    "data_retention": "compliance",
    "audit_logging": "compliance",
    "pii_handling": "compliance",
    "availability": "availability",
    "retry_policy": "availability",
    "failover": "availability",
    "latency": "performance",
    "read_latency": "performance",
    "write_latency": "performance",
    "redirect_latency": "performance",
    "throughput": "performance",
    "caching": "performance",
    "code_style": "maintainability",
    "modularity": "maintainability",
    "budget": "cost",
    "instance_type": "cost",
}


@dataclass(frozen=True)
class PriorityLattice:
    """Versioned category and domain orderings."""

    version: str = LATTICE_VERSION
    categories: Tuple[str, ...] = CATEGORY_ORDER
    domains: Tuple[str, ...] = DOMAIN_ORDER
    value_categories: Dict[Tuple[str, str], str] = field(default_factory=lambda: dict(VALUE_CATEGORIES))
    target_categories: Dict[str, str] = field(default_factory=lambda: dict(TARGET_CATEGORIES))

    def category_of(self, constraint: Constraint) -> Optional[str]:
        """Explicit category, else (target, value) table, else target table."""
        if constraint.category and constraint.category in self.categories:
            return constraint.category

        target = constraint.target_key
        if isinstance(constraint.value, str):
            by_value = self.value_categories.get((target, constraint.value.strip().casefold()))
            if by_value:
                return by_value
        return self.target_categories.get(target)

    def category_rank(self, category: str) -> int:
        return self.categories.index(category)

    def domain_rank(self, domain: str) -> Tuple[int, str]:
        # Unknown domains sort after known ones, lexicographically
        normalized = domain.strip().upper()
        if normalized in self.domains:
            return (self.domains.index(normalized), "")
        return (len(self.domains), normalized)


DEFAULT_LATTICE = PriorityLattice()


@dataclass(frozen=True)
class RankedMember:
    constraint: Constraint
    category: str
    position: int
    lattice: PriorityLattice

    def sort_key(self):
        hint_rank = 0 if self.constraint.priority_hint == "hard" else 1
        return (
            self.lattice.category_rank(self.category),
            self.lattice.domain_rank(self.constraint.source),
            hint_rank,
            self.position,
        )


class PriorityArbiter:
    """Completes conflict records using the priority lattice."""

    def __init__(self, lattice: PriorityLattice = DEFAULT_LATTICE):
        self.lattice = lattice

    def arbitrate(self, record: ConflictRecord, constraints: List[Constraint]) -> ConflictRecord:
        """
        Resolve one conflict.

        Args:
            record: Detected conflict (resolution still unresolved)
            constraints: Full input list, in input order

        Returns:
            Completed copy of record
        """
        positions = {c.id: i for i, c in enumerate(constraints)}
        by_id = {c.id: c for c in constraints}
        members = [by_id[cid] for cid in record.constraint_ids if cid in by_id]

        uncategorized = [c.id for c in members if self.lattice.category_of(c) is None]
        if uncategorized and len(members) >= 2:
            hard = [c for c in members if c.priority_hint == "hard"]
            if len(hard) == 1:
                return record.model_copy(
                    update={
                        "resolution": RESOLUTION_PRIORITY,
                        "resolved_value": hard[0].value,
                        "winner_id": hard[0].id,
                        "rationale": "Hard constraint takes precedence over soft constraint",
                    }
                )

        if uncategorized or len(members) < 2:
            return record.model_copy(
                update={
                    "resolution": RESOLUTION_UNRESOLVED,
                    "resolved_value": None,
                    "winner_id": None,
                    "rationale": (
                        f"No priority rule applies to {', '.join(uncategorized)}"
                        if uncategorized else "Conflict members missing from input"
                    ),
                }
            )

        ranked = sorted(
            (
                RankedMember(
                    constraint=c,
                    category=self.lattice.category_of(c),
                    position=positions[c.id],
                    lattice=self.lattice,
                )
                for c in members
            ),
            key=lambda m: m.sort_key(),
        )
        top, runner_up = ranked[0], ranked[1]
        top_key, runner_key = top.sort_key(), runner_up.sort_key()

        if top_key[0] < runner_key[0]:
            resolution = RESOLUTION_PRIORITY
            rationale = f"Category {top.category} outranks {runner_up.category}"
        elif top_key[1] < runner_key[1]:
            resolution = RESOLUTION_PRIORITY
            rationale = (
                f"Same category {top.category}; domain {top.constraint.source} "
                f"outranks {runner_up.constraint.source}"
            )
        else:
            resolution = RESOLUTION_AUTO
            rationale = f"Same category {top.category} and domain {top.constraint.source}"

        return record.model_copy(
            update={
                "resolution": resolution,
                "resolved_value": top.constraint.value,
                "winner_id": top.constraint.id,
                "rationale": rationale,
            }
        )

    def arbitrate_all(self, records: List[ConflictRecord], constraints: List[Constraint]) -> List[ConflictRecord]:
        completed = [self.arbitrate(record, constraints) for record in records]
        logger.debug(
            "conflicts_arbitrated",
            lattice_version=self.lattice.version,
            resolutions=[r.resolution for r in completed],
        )
        return completed
