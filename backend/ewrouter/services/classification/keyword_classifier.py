"""
Keyword classification service (fast path).

Scores a normalized query against every known system, DB domain, BE cluster
and SE cluster:
- Candidate score = strongest matched signal + a small bonus per additional
  distinct signal, capped below 1.0. Repeating a keyword adds nothing and
  weak signals can never add up to a strong one.
- A candidate is included when its score clears the inclusion threshold of
  its category (systems / subdomains).
- Subdomains are only scored for included parent systems; a matched
  subdomain corroborates its parent.
- Overall confidence is the maximum over included systems, never a sum.

Archetype matches short-circuit with confidence 1.0.
"""
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ewrouter.core.logging import get_logger
from ewrouter.models.classification import ClassificationResult, pattern_for
from ewrouter.services.classification.archetypes import (
    archetype_constraints,
    match_archetype,
)
from ewrouter.services.classification.keywords import (
    DYNAMODB_THROUGHPUT_INTENT,
    DYNAMODB_VENDOR_ANCHORS,
    STRONG_WEIGHT,
    SUBDOMAIN_GROUPS,
    SYSTEM_GROUPS,
    SignalGroup,
)
from ewrouter.services.classification.signature import compute_signature, normalize_query

logger = get_logger(__name__)

# Keyword evidence alone never reaches the certainty reserved for cache/archetype hits
KEYWORD_CONFIDENCE_CEILING = 0.95
CORROBORATION_BONUS = 0.05
SUBDOMAIN_BONUS = 0.1

DEFAULT_SYSTEM_INCLUSION_THRESHOLD = 0.4
DEFAULT_SUBDOMAIN_INCLUSION_THRESHOLD = 0.5


@dataclass(frozen=True)
class CandidateScore:
    """Score of one candidate id against a query."""

    candidate_id: str
    score: float
    matched: Tuple[str, ...]

    @property
    def distinct_hits(self) -> int:
        return len(self.matched)

    def rank_key(self) -> Tuple[float, int, str]:
        # Higher score first, then more distinct matches, then id for determinism
        return (-self.score, -self.distinct_hits, self.candidate_id)


def score_candidate(weights: Dict[str, float], candidate_id: str) -> CandidateScore:
    """
    Turn matched signal weights into a bounded candidate score.

    Args:
        weights: phrase -> weight for every distinct matched signal
        candidate_id: Candidate being scored

    Returns:
        CandidateScore with score in [0, KEYWORD_CONFIDENCE_CEILING]
    """
    if not weights:
        return CandidateScore(candidate_id=candidate_id, score=0.0, matched=())

    strongest = max(weights.values())
    score = strongest + CORROBORATION_BONUS * (len(weights) - 1)
    score = round(min(KEYWORD_CONFIDENCE_CEILING, score), 4)
    return CandidateScore(candidate_id=candidate_id, score=score, matched=tuple(sorted(weights)))


def rank_candidates(scores: List[CandidateScore]) -> List[CandidateScore]:
    """Order candidates by score, distinct matches, then id."""
    return sorted(scores, key=lambda s: s.rank_key())


class KeywordClassificationService:
    """
    Keyword classification service.

    Classifies queries into systems (DB/BE/IF/SE) and their subdomains.
    Pure and deterministic: identical text always yields an identical result.
    """

    def __init__(
        self,
        system_inclusion_threshold: float = DEFAULT_SYSTEM_INCLUSION_THRESHOLD,
        subdomain_inclusion_threshold: float = DEFAULT_SUBDOMAIN_INCLUSION_THRESHOLD,
    ):
        """
        Initialize keyword classification service.

        Args:
            system_inclusion_threshold: Minimum score for a system to be included
            subdomain_inclusion_threshold: Minimum score for a domain/cluster to be included
        """
        self.system_inclusion_threshold = system_inclusion_threshold
        self.subdomain_inclusion_threshold = subdomain_inclusion_threshold

    def _match_group(self, text: str, group: SignalGroup) -> Dict[str, float]:
        matched: Dict[str, float] = {}
        for signal in group.signals:
            if signal.pattern.search(text):
                matched[signal.phrase] = signal.weight
        return matched

    def _has_dynamodb_anchor(self, text: str) -> bool:
        return any(anchor in text for anchor in DYNAMODB_VENDOR_ANCHORS)

    def score_system(self, text: str, system: str) -> CandidateScore:
        matched = self._match_group(text, SYSTEM_GROUPS[system])
        if system == "DB" and self._has_dynamodb_anchor(text):
            matched["dynamodb"] = STRONG_WEIGHT
        return score_candidate(matched, system)

    def score_subdomain(self, text: str, system: str, subdomain: str) -> CandidateScore:
        matched = self._match_group(text, SUBDOMAIN_GROUPS[system][subdomain])
        if system == "DB" and subdomain == "F" and self._has_dynamodb_anchor(text):
            # Vendor anchor + throughput intent is a distribution question
            intents = [k for k in DYNAMODB_THROUGHPUT_INTENT if k in text]
            if intents:
                matched["dynamodb throughput"] = STRONG_WEIGHT
        return score_candidate(matched, subdomain)

    def score_subdomains(self, text: str, system: str) -> List[CandidateScore]:
        groups = SUBDOMAIN_GROUPS.get(system, {})
        return [self.score_subdomain(text, system, sub) for sub in groups]

    def classify(self, query: str) -> ClassificationResult:
        """
        Classify a query by archetype or keyword signals.

        The returned result is raw: escalation fields are filled in by the
        escalation policy.

        Args:
            query: Raw query string

        Returns:
            ClassificationResult
        """
        text = normalize_query(query)
        signature = compute_signature(query)

        if not text:
            return ClassificationResult(query=query, signature=signature)

        archetype = match_archetype(text)
        if archetype is not None:
            logger.debug(
                "keyword_classification_archetype_matched",
                archetype=archetype.archetype_id,
                signature=signature,
            )
            return ClassificationResult(
                query=query,
                signature=signature,
                systems=list(archetype.systems),
                domains=list(archetype.domains),
                be_clusters=list(archetype.be_clusters),
                se_clusters=list(archetype.se_clusters),
                confidence=1.0,
                pattern=pattern_for(list(archetype.systems)),
                archetype_matched=[archetype.archetype_id],
                archetype_constraints=archetype_constraints(archetype),
            )

        included_systems: List[CandidateScore] = []
        subdomains: Dict[str, List[CandidateScore]] = {}

        for system in SYSTEM_GROUPS:
            system_score = self.score_system(text, system)
            if system_score.score < self.system_inclusion_threshold:
                continue

            included_subs = [
                s for s in self.score_subdomains(text, system)
                if s.score >= self.subdomain_inclusion_threshold
            ]
            subdomains[system] = rank_candidates(included_subs)

            if included_subs:
                corroborated = min(KEYWORD_CONFIDENCE_CEILING, system_score.score + SUBDOMAIN_BONUS)
                system_score = CandidateScore(
                    candidate_id=system,
                    score=round(corroborated, 4),
                    matched=system_score.matched,
                )
            included_systems.append(system_score)

        ranked = rank_candidates(included_systems)
        systems = [s.candidate_id for s in ranked]
        confidence = ranked[0].score if ranked else 0.0

        result = ClassificationResult(
            query=query,
            signature=signature,
            systems=systems,
            domains=[s.candidate_id for s in subdomains.get("DB", [])],
            be_clusters=[s.candidate_id for s in subdomains.get("BE", [])],
            se_clusters=[s.candidate_id for s in subdomains.get("SE", [])],
            confidence=confidence,
            pattern=pattern_for(systems),
        )

        logger.debug(
            "keyword_classification_scored",
            signature=signature,
            systems=[(s.candidate_id, s.score, s.distinct_hits) for s in ranked],
            confidence=confidence,
        )
        return result
