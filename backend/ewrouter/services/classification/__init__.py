"""Query classification services: keyword fast path, pattern cache and session-aware boosting."""

from .classifier import QueryClassifier, get_query_classifier
from .keyword_classifier import KeywordClassificationService

__all__ = ["QueryClassifier", "get_query_classifier", "KeywordClassificationService"]
