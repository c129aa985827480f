"""
Archetype library.

Canonical example queries whose routing is known in advance. An exact or
near-exact match (same set of alphanumeric tokens, ignoring order,
punctuation and repetition) short-circuits keyword scoring with
confidence 1.0 and injects the archetype's preset constraints.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from ewrouter.services.classification.signature import normalize_query

_TOKEN = re.compile(r"[^\W_]+")


def token_set(query: str) -> FrozenSet[str]:
    """Alphanumeric tokens of the normalized query."""
    return frozenset(_TOKEN.findall(normalize_query(query)))


@dataclass(frozen=True)
class Archetype:
    archetype_id: str
    query: str
    systems: Tuple[str, ...]
    domains: Tuple[str, ...] = ()
    be_clusters: Tuple[str, ...] = ()
    se_clusters: Tuple[str, ...] = ()
    constraints: Tuple[Dict[str, Any], ...] = field(default=(), compare=False)

    @property
    def tokens(self) -> FrozenSet[str]:
        return token_set(self.query)


ARCHETYPES: Tuple[Archetype, ...] = (
    Archetype(
        archetype_id="url-shortener",
        query="design a url shortener",
        systems=("DB", "BE"),
        domains=("D", "F"),
        be_clusters=("S",),
        constraints=(
            {"id": "arch-url-shortener-1", "source": "DB", "target": "key_generation",
             "value": "collision-free", "priority_hint": "hard", "category": "data_integrity"},
            {"id": "arch-url-shortener-2", "source": "BE", "target": "redirect_latency",
             "value": "low", "priority_hint": "soft", "category": "performance"},
        ),
    ),
    Archetype(
        archetype_id="payment-saga",
        query="design a payment flow with saga compensation",
        systems=("DB", "BE"),
        domains=("C",),
        be_clusters=("B", "R"),
        constraints=(
            {"id": "arch-payment-saga-1", "source": "BE", "target": "idempotency",
             "value": "required", "priority_hint": "hard", "category": "data_integrity"},
            {"id": "arch-payment-saga-2", "source": "DB", "target": "consistency",
             "value": "strong", "priority_hint": "hard", "category": "data_integrity"},
        ),
    ),
    Archetype(
        archetype_id="jwt-refresh",
        query="implement jwt authentication with refresh tokens",
        systems=("SE", "BE"),
        se_clusters=("A",),
        be_clusters=("S",),
        constraints=(
            {"id": "arch-jwt-refresh-1", "source": "SE", "target": "token_storage",
             "value": "httponly-cookie", "priority_hint": "hard", "category": "security"},
            {"id": "arch-jwt-refresh-2", "source": "SE", "target": "access_token_ttl",
             "value": "15m", "priority_hint": "soft", "category": "security"},
        ),
    ),
    Archetype(
        archetype_id="inventory-isolation",
        query="choose an isolation level for inventory reservation",
        systems=("DB",),
        domains=("C",),
        constraints=(
            {"id": "arch-inventory-isolation-1", "source": "DB", "target": "isolation",
             "value": "serializable", "priority_hint": "soft", "category": "data_integrity"},
        ),
    ),
    Archetype(
        archetype_id="external-api-resilience",
        query="add circuit breaker and retry for external api calls",
        systems=("BE",),
        be_clusters=("R", "B"),
        constraints=(
            {"id": "arch-external-api-resilience-1", "source": "BE", "target": "retry_policy",
             "value": "exponential-backoff", "priority_hint": "soft", "category": "availability"},
        ),
    ),
    Archetype(
        archetype_id="multi-tenant-rbac",
        query="design an rbac permission model for a multi-tenant saas",
        systems=("SE", "DB"),
        se_clusters=("Z",),
        domains=("D",),
        constraints=(
            {"id": "arch-multi-tenant-rbac-1", "source": "SE", "target": "tenant_isolation",
             "value": "row-level", "priority_hint": "hard", "category": "security"},
        ),
    ),
)


def match_archetype(query: str) -> Optional[Archetype]:
    """
    Find the archetype matching a query.

    Args:
        query: Raw query string

    Returns:
        Matching archetype or None
    """
    tokens = token_set(query)
    if not tokens:
        return None

    for archetype in ARCHETYPES:
        if archetype.tokens == tokens:
            return archetype
    return None


def archetype_constraints(archetype: Archetype) -> List[Dict[str, Any]]:
    """Preset constraints of an archetype, as plain dicts."""
    return [dict(c) for c in archetype.constraints]
