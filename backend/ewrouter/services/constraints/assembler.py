"""
Resolution assembly.

resolved_set = input-order constraints, minus losers of resolved conflicts
and every member of an unresolved conflict, keeping the first survivor per
target. The caller sees unresolved conflicts explicitly instead of a
silently picked value.
"""
from typing import Any, Dict, List, Set

from ewrouter.models.constraints import RESOLUTION_UNRESOLVED, ConflictRecord, Constraint
from ewrouter.services.classification.pattern_cache import timestamp_iso


def excluded_ids(conflicts: List[ConflictRecord]) -> Set[str]:
    """Ids that must not reach the resolved set."""
    excluded: Set[str] = set()
    for record in conflicts:
        if record.resolution == RESOLUTION_UNRESOLVED:
            excluded.update(record.constraint_ids)
        else:
            excluded.update(cid for cid in record.constraint_ids if cid != record.winner_id)
    return excluded


def resolved_set(constraints: List[Constraint], conflicts: List[ConflictRecord]) -> List[Constraint]:
    excluded = excluded_ids(conflicts)
    survivors: List[Constraint] = []
    seen_targets: Set[str] = set()
    for constraint in constraints:
        if constraint.id in excluded or constraint.target_key in seen_targets:
            continue
        seen_targets.add(constraint.target_key)
        survivors.append(constraint)
    return survivors


def assemble(
    constraints: List[Constraint],
    conflicts: List[ConflictRecord],
    lattice_version: str,
) -> Dict[str, Any]:
    """
    Build resolver output.

    Returns:
        {"conflicts": [...], "resolved_set": [...], "metadata": {...}}
    """
    survivors = resolved_set(constraints, conflicts)
    unresolved = sum(1 for r in conflicts if r.resolution == RESOLUTION_UNRESOLVED)

    return {
        "conflicts": [record.to_dict() for record in conflicts],
        "resolved_set": [constraint.to_dict() for constraint in survivors],
        "metadata": {
            "total_declared": len(constraints),
            "total_accepted": len(survivors),
            "total_rejected": len(constraints) - len(survivors),
            "total_conflicts": len(conflicts),
            "total_unresolved": unresolved,
            "lattice_version": lattice_version,
            "resolved_at": timestamp_iso(),
        },
    }
