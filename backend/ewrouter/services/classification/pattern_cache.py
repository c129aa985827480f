"""
Pattern cache for query classifications.

Key format: query signature (md5 of the normalized query).
Entry: {"classification": {...}, "hit_count": int, "last_used": ISO-8601}

Lookup is exact-match only. A hit is served with confidence 1.0 and carries
cache provenance (classifier="fast-path", from_cache=True) so consumers can
discount the artificial certainty. Stores are best-effort: failures are
logged and never reach the caller.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ewrouter.core.logging import get_logger
from ewrouter.core.metrics import record_cache_hit, record_cache_miss
from ewrouter.core.store import DocumentStore
from ewrouter.models.classification import (
    CLASSIFIER_FAST_PATH,
    ESCALATION_ACCEPTED,
    ClassificationResult,
    PatternCacheEntry,
    pattern_for,
)

logger = get_logger(__name__)

# Reserved document key holding the transition table
TRANSITIONS_KEY = "__transitions__"

DEFAULT_PROMOTION_HITS = 1


def timestamp_iso() -> str:
    """UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_cache_certainty(result: ClassificationResult) -> bool:
    """
    True when a result's confidence of 1.0 comes from the pattern cache.

    Validators use this to flag certainty that was not earned by evidence.
    """
    return result.from_cache and result.confidence == 1.0


class PatternCache:
    """Signature -> classification cache on top of a DocumentStore."""

    def __init__(self, store: DocumentStore, promotion_hits: int = DEFAULT_PROMOTION_HITS):
        """
        Initialize pattern cache.

        Args:
            store: Backing document store
            promotion_hits: Times a signature must have been stored before lookups serve it
        """
        self.backend = store
        self.promotion_hits = promotion_hits

    def _read_entry(self, signature: str) -> Optional[PatternCacheEntry]:
        if signature == TRANSITIONS_KEY:
            return None

        raw = self.backend.get(signature)
        if raw is None:
            return None

        try:
            return PatternCacheEntry.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "pattern_cache_entry_invalid",
                signature=signature,
                error=str(e),
            )
            return None

    def lookup(self, signature: str) -> Optional[ClassificationResult]:
        """
        Get the cached classification for a signature.

        Returns:
            ClassificationResult with cache provenance, or None on miss
        """
        try:
            entry = self._read_entry(signature)
        except Exception as e:
            logger.warning(
                "pattern_cache_lookup_failed",
                signature=signature,
                error=str(e),
                error_type=type(e).__name__,
            )
            entry = None

        if entry is None or entry.hit_count < self.promotion_hits:
            record_cache_miss("pattern")
            logger.debug("cache_miss", cache_type="pattern", signature=signature)
            return None

        try:
            cached = ClassificationResult.model_validate(entry.classification)
        except ValidationError as e:
            record_cache_miss("pattern")
            logger.warning(
                "pattern_cache_classification_invalid",
                signature=signature,
                error=str(e),
            )
            return None

        record_cache_hit("pattern")
        logger.debug("cache_hit", cache_type="pattern", signature=signature, hit_count=entry.hit_count)

        return cached.model_copy(
            update={
                "signature": signature,
                "confidence": 1.0,
                "pattern": pattern_for(cached.systems),
                "classifier": CLASSIFIER_FAST_PATH,
                "from_cache": True,
                "needs_llm_verification": False,
                "escalation": ESCALATION_ACCEPTED,
                "prior_boost": 0.0,
                "verification_prompt": None,
            }
        )

    def store(self, signature: str, result: ClassificationResult, promote: bool = False) -> bool:
        """
        Create or refresh the entry for a signature.

        A cache-served result only refreshes hit_count/last_used; any other
        result replaces the stored classification.

        Args:
            signature: Query signature
            result: Classification to remember
            promote: Make the entry servable immediately (verified results)

        Returns:
            True if persisted, False otherwise (never raises)
        """
        if signature == TRANSITIONS_KEY:
            return False

        try:
            document = self.backend.load()
            previous = document.get(signature)
            previous_hits = 0
            classification: Dict[str, Any] = result.summary()
            if isinstance(previous, dict):
                hits = previous.get("hit_count")
                previous_hits = hits if isinstance(hits, int) and hits >= 0 else 0
                if result.from_cache and isinstance(previous.get("classification"), dict):
                    classification = previous["classification"]

            hit_count = previous_hits + 1
            if promote:
                hit_count = max(hit_count, self.promotion_hits)

            entry = PatternCacheEntry(
                classification=classification,
                hit_count=hit_count,
                last_used=timestamp_iso(),
            )
            document[signature] = entry.model_dump()
            success = self.backend.replace(document)
        except Exception as e:
            logger.warning(
                "pattern_cache_store_failed",
                signature=signature,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if success:
            logger.debug("cache_set", cache_type="pattern", signature=signature, hit_count=hit_count)
        else:
            logger.warning("cache_set_failed", cache_type="pattern", signature=signature)
        return success
