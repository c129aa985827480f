"""
Progressive classification.

Adjusts a raw keyword classification using the session's recent history:
- Topic continuity: when the most recent entries keep focusing on the same
  system(s), add a small fixed increment per continuing turn (capped)
- Transition bookkeeping: a change of primary domain between turns
  increments the transition table
- Suggested expansions: domains users most often moved to from the
  current primary domain

Boosting never adds systems, domains or clusters and never lifts keyword
evidence to the 1.0 reserved for cache and archetype hits.
"""
from typing import Dict, List, Optional

from ewrouter.core.logging import get_logger
from ewrouter.core.metrics import record_classification_boost
from ewrouter.core.store import DocumentStore
from ewrouter.models.classification import ClassificationResult, SessionHistoryEntry
from ewrouter.services.classification.keyword_classifier import KEYWORD_CONFIDENCE_CEILING
from ewrouter.services.classification.pattern_cache import TRANSITIONS_KEY

logger = get_logger(__name__)

DEFAULT_BOOST_INCREMENT = 0.05
DEFAULT_MAX_BOOST = 0.15
DEFAULT_MAX_EXPANSIONS = 3


class TransitionTable:
    """
    Domain-to-domain transition counts.

    Stored as {prev_domain: {curr_domain: count}} under the reserved
    TRANSITIONS_KEY of the pattern cache document.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def counts(self) -> Dict[str, Dict[str, int]]:
        raw = self.store.get(TRANSITIONS_KEY)
        if not isinstance(raw, dict):
            return {}

        table: Dict[str, Dict[str, int]] = {}
        for prev, row in raw.items():
            if not isinstance(row, dict):
                continue
            table[prev] = {
                curr: count for curr, count in row.items()
                if isinstance(count, int) and not isinstance(count, bool) and count > 0
            }
        return table

    def record(self, prev_domain: str, curr_domain: str) -> bool:
        """Increment the counter for (prev_domain, curr_domain)."""
        document = self.store.load()
        table = document.get(TRANSITIONS_KEY)
        if not isinstance(table, dict):
            table = {}
        row = table.get(prev_domain)
        if not isinstance(row, dict):
            row = {}
        count = row.get(curr_domain)
        row[curr_domain] = (count if isinstance(count, int) else 0) + 1
        table[prev_domain] = row
        document[TRANSITIONS_KEY] = table
        return self.store.replace(document)

    def most_likely_next(self, domain: str, limit: int) -> List[str]:
        """Most frequent successors of a domain (count desc, key asc)."""
        if limit <= 0:
            return []
        row = self.counts().get(domain, {})
        ranked = sorted(row.items(), key=lambda item: (-item[1], item[0]))
        return [curr for curr, _ in ranked[:limit] if curr != domain]


class ProgressiveBooster:
    """Session-aware confidence adjustment."""

    def __init__(
        self,
        transitions: TransitionTable,
        boost_increment: float = DEFAULT_BOOST_INCREMENT,
        max_boost: float = DEFAULT_MAX_BOOST,
        max_expansions: int = DEFAULT_MAX_EXPANSIONS,
    ):
        self.transitions = transitions
        self.boost_increment = boost_increment
        self.max_boost = max_boost
        self.max_expansions = max_expansions

    def continuity_streak(self, result: ClassificationResult, recent: List[SessionHistoryEntry]) -> int:
        """
        Number of consecutive most-recent entries sharing a system with result.
        """
        current = set(result.systems)
        if not current:
            return 0

        streak = 0
        for entry in reversed(recent):
            if current & set(entry.systems()):
                streak += 1
            else:
                break
        return streak

    def boost(self, result: ClassificationResult, recent: List[SessionHistoryEntry]) -> ClassificationResult:
        """
        Apply history-based boosting.

        Args:
            result: Raw keyword classification
            recent: Recent history entries, oldest first

        Returns:
            Copy of result with prior_boost set and confidence raised
        """
        if result.from_cache or result.archetype_matched or result.confidence <= 0.0:
            return result

        streak = self.continuity_streak(result, recent)
        if streak == 0:
            return result

        increment = min(self.max_boost, self.boost_increment * streak)
        ceiling = max(result.confidence, KEYWORD_CONFIDENCE_CEILING)
        boosted = round(min(ceiling, result.confidence + increment), 4)
        applied = round(max(0.0, boosted - result.confidence), 4)

        if applied > 0:
            record_classification_boost()
            logger.debug(
                "classification_boosted",
                signature=result.signature,
                streak=streak,
                prior_boost=applied,
                confidence=boosted,
            )

        return result.model_copy(update={"confidence": boosted, "prior_boost": applied})

    def record_transition(self, previous: Optional[SessionHistoryEntry], result: ClassificationResult) -> bool:
        """
        Count a primary-domain change between the previous entry and result.

        Observational only: failures are logged and swallowed.
        """
        if previous is None:
            return False

        prev_domain = previous.domain_key()
        curr_domain = result.domain_key()
        if not prev_domain or not curr_domain or prev_domain == curr_domain:
            return False

        try:
            recorded = self.transitions.record(prev_domain, curr_domain)
        except Exception as e:
            logger.warning(
                "transition_record_failed",
                prev_domain=prev_domain,
                curr_domain=curr_domain,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if recorded:
            logger.debug("transition_recorded", prev_domain=prev_domain, curr_domain=curr_domain)
        return recorded

    def suggest_expansions(self, result: ClassificationResult) -> List[str]:
        """Likely follow-up domains for the result's primary domain."""
        domain = result.domain_key()
        if not domain:
            return []
        try:
            return self.transitions.most_likely_next(domain, self.max_expansions)
        except Exception as e:
            logger.warning(
                "transition_lookup_failed",
                domain=domain,
                error=str(e),
                error_type=type(e).__name__,
            )
            return []
