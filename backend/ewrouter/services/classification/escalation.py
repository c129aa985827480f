"""
Escalation policy.

Maps classification confidence onto three tiers:
- accepted: confidence >= fast_path_threshold, no verification needed
- provisional: llm_fallback_threshold <= confidence < fast_path_threshold
- unclassified: confidence < llm_fallback_threshold; result sets are kept
  but must not be trusted

Anything below accepted carries needs_llm_verification=True plus a
ready-to-send verification prompt.
"""
from dataclasses import dataclass
from typing import Optional

from ewrouter.models.classification import (
    ESCALATION_ACCEPTED,
    ESCALATION_PROVISIONAL,
    ESCALATION_UNCLASSIFIED,
    ClassificationResult,
)

DEFAULT_FAST_PATH_THRESHOLD = 0.85
DEFAULT_LLM_FALLBACK_THRESHOLD = 0.3


@dataclass(frozen=True)
class EscalationDecision:
    state: str
    needs_llm_verification: bool


def build_verification_prompt(result: ClassificationResult) -> str:
    """Prompt asking an LLM to confirm or correct a keyword classification."""
    confidence = f"{result.confidence:g}"
    if len(result.systems) >= 2:
        return (
            f"Classify: '{result.query}'. Detected systems: [{' '.join(result.systems)}] "
            f"(confidence={confidence}). Confirm primary system(s) and relevance. "
            "Return JSON: {systems:[], confidence:float}"
        )
    if len(result.systems) == 1:
        return (
            f"Classify: '{result.query}'. Detected: {result.systems[0]} "
            f"(confidence={confidence}). Verify classification and suggest if other systems apply. "
            "Return JSON: {systems:[], confidence:float}"
        )
    return (
        f"Classify: '{result.query}'. No system detected by keywords. "
        "Classify into [DB,BE,IF,SE]. Return JSON: {systems:[], domains:[], confidence:float}"
    )


class EscalationPolicy:
    """Confidence tiers for classification results."""

    def __init__(
        self,
        fast_path_threshold: float = DEFAULT_FAST_PATH_THRESHOLD,
        llm_fallback_threshold: float = DEFAULT_LLM_FALLBACK_THRESHOLD,
    ):
        if llm_fallback_threshold >= fast_path_threshold:
            raise ValueError("llm_fallback_threshold must be lower than fast_path_threshold")
        self.fast_path_threshold = fast_path_threshold
        self.llm_fallback_threshold = llm_fallback_threshold

    def decide(self, confidence: float) -> EscalationDecision:
        if confidence >= self.fast_path_threshold:
            return EscalationDecision(state=ESCALATION_ACCEPTED, needs_llm_verification=False)
        if confidence >= self.llm_fallback_threshold:
            return EscalationDecision(state=ESCALATION_PROVISIONAL, needs_llm_verification=True)
        return EscalationDecision(state=ESCALATION_UNCLASSIFIED, needs_llm_verification=True)

    def apply(self, result: ClassificationResult, with_prompt: bool = True) -> ClassificationResult:
        """
        Fill escalation fields of a result.

        Args:
            result: Classification to decide on
            with_prompt: Attach a verification prompt when verification is needed

        Returns:
            Copy of result with escalation, needs_llm_verification and verification_prompt set
        """
        decision = self.decide(result.confidence)
        prompt: Optional[str] = None
        if decision.needs_llm_verification and with_prompt:
            prompt = build_verification_prompt(result)

        return result.model_copy(
            update={
                "escalation": decision.state,
                "needs_llm_verification": decision.needs_llm_verification,
                "verification_prompt": prompt,
            }
        )
