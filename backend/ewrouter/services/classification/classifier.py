"""
Query classifier: full classification pipeline.

signature -> pattern cache (hit short-circuits) -> archetype / keyword
classifier -> progressive booster -> escalation policy -> persistence.

Persistence (history append, cache store, transition record) is best-effort:
a broken store never changes the returned classification.
"""
import time
from typing import Any, Dict, Optional

from ewrouter.core.config import Settings, get_settings
from ewrouter.core.logging import get_logger
from ewrouter.core.metrics import record_classification
from ewrouter.core.store import JsonFileStore, JsonlFileStore
from ewrouter.models.classification import (
    CLASSIFIER_LLM,
    ClassificationResult,
    pattern_for,
    validate_verification_payload,
)
from ewrouter.services.classification.booster import ProgressiveBooster, TransitionTable
from ewrouter.services.classification.escalation import EscalationPolicy
from ewrouter.services.classification.keyword_classifier import KeywordClassificationService
from ewrouter.services.classification.pattern_cache import PatternCache, is_cache_certainty
from ewrouter.services.classification.session_history import SessionHistory
from ewrouter.services.classification.signature import compute_signature

logger = get_logger(__name__)


class QueryClassifier:
    """Orchestrates cache, keyword scoring, boosting and escalation."""

    def __init__(
        self,
        keyword_service: KeywordClassificationService,
        cache: PatternCache,
        history: SessionHistory,
        booster: ProgressiveBooster,
        policy: EscalationPolicy,
        progressive: bool = True,
        history_window: int = 3,
    ):
        self.keyword_service = keyword_service
        self.cache = cache
        self.history = history
        self.booster = booster
        self.policy = policy
        self.progressive = progressive
        self.history_window = history_window

    @classmethod
    def from_settings(cls, settings: Settings) -> "QueryClassifier":
        """Build a classifier backed by the file stores under settings.cache_dir."""
        document_store = JsonFileStore(settings.pattern_cache_path, name="pattern_cache")
        log_store = JsonlFileStore(settings.session_history_path, name="session_history")
        return cls(
            keyword_service=KeywordClassificationService(
                system_inclusion_threshold=settings.system_inclusion_threshold,
                subdomain_inclusion_threshold=settings.subdomain_inclusion_threshold,
            ),
            cache=PatternCache(document_store, promotion_hits=settings.cache_promotion_hits),
            history=SessionHistory(log_store),
            booster=ProgressiveBooster(
                TransitionTable(document_store),
                boost_increment=settings.boost_increment,
                max_boost=settings.max_boost,
                max_expansions=settings.max_expansions,
            ),
            policy=EscalationPolicy(
                fast_path_threshold=settings.fast_path_threshold,
                llm_fallback_threshold=settings.llm_fallback_threshold,
            ),
            progressive=settings.progressive_classification,
            history_window=settings.history_window,
        )

    def _persist(self, signature: str, result: ClassificationResult, promote: bool = False) -> None:
        previous = self.history.last()

        if result.systems:
            self.cache.store(signature, result, promote=promote)

        if self.progressive:
            self.booster.record_transition(previous, result)

        self.history.append(result, prev_signature=previous.signature if previous else None)

    def classify(self, query: str) -> ClassificationResult:
        """
        Classify a query.

        Args:
            query: Raw query string

        Returns:
            ClassificationResult with escalation fields filled
        """
        start_time = time.time()
        signature = compute_signature(query)

        cached = self.cache.lookup(signature)
        if cached is not None:
            result = cached.model_copy(update={"query": query})
            if self.progressive:
                result = result.model_copy(
                    update={"suggested_expansions": self.booster.suggest_expansions(result)}
                )
            self._persist(signature, result)
            latency = time.time() - start_time
            record_classification(result.classifier, result.escalation, latency)
            logger.info(
                "classification_completed_cached",
                signature=signature,
                systems=result.systems,
                confidence=result.confidence,
                cache_certainty=is_cache_certainty(result),
                latency_ms=int(latency * 1000),
            )
            return result

        result = self.keyword_service.classify(query)

        if self.progressive:
            recent = self.history.window(self.history_window)
            result = self.booster.boost(result, recent)
            result = result.model_copy(
                update={"suggested_expansions": self.booster.suggest_expansions(result)}
            )

        result = self.policy.apply(result)
        self._persist(signature, result)

        latency = time.time() - start_time
        record_classification(result.classifier, result.escalation, latency)
        logger.info(
            "classification_completed",
            signature=signature,
            systems=result.systems,
            pattern=result.pattern,
            confidence=result.confidence,
            escalation=result.escalation,
            prior_boost=result.prior_boost,
            archetype_matched=result.archetype_matched,
            latency_ms=int(latency * 1000),
        )
        return result

    def record_verification(self, query: str, payload: Dict[str, Any]) -> ClassificationResult:
        """
        Record an externally produced LLM classification for a query.

        Args:
            query: Raw query string the verification refers to
            payload: {"systems", "domains", "be_clusters", "se_clusters", "confidence"}

        Returns:
            ClassificationResult with classifier="llm"

        Raises:
            VerificationError: payload fails schema validation
        """
        start_time = time.time()
        verified = validate_verification_payload(payload)
        signature = compute_signature(query)
        decision = self.policy.decide(verified.confidence)

        result = ClassificationResult(
            query=query,
            signature=signature,
            systems=verified.systems,
            domains=verified.domains,
            be_clusters=verified.be_clusters,
            se_clusters=verified.se_clusters,
            confidence=verified.confidence,
            pattern=pattern_for(verified.systems),
            classifier=CLASSIFIER_LLM,
            needs_llm_verification=False,
            escalation=decision.state,
        )
        self._persist(signature, result, promote=True)

        latency = time.time() - start_time
        record_classification(result.classifier, result.escalation, latency)
        logger.info(
            "classification_verified",
            signature=signature,
            systems=result.systems,
            confidence=result.confidence,
            escalation=result.escalation,
        )
        return result


_query_classifier: Optional[QueryClassifier] = None


def get_query_classifier() -> QueryClassifier:
    """
    Get global query classifier instance.

    Returns:
        QueryClassifier instance
    """
    global _query_classifier

    if _query_classifier is None:
        _query_classifier = QueryClassifier.from_settings(get_settings())

    return _query_classifier


def reset_query_classifier() -> None:
    """Drop the global classifier (used by tests and after settings changes)."""
    global _query_classifier
    _query_classifier = None
