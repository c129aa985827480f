"""
Pydantic models for query classification.

Schema of a classification result:
{
  "systems": ["SE"], "domains": [], "be_clusters": [], "se_clusters": ["A"],
  "confidence": 0.9, "pattern": "single", "classifier": "fast-path",
  "needs_llm_verification": false, "archetype_matched": [],
  "prior_boost": 0.0, "suggested_expansions": []
}
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

CLASSIFIER_FAST_PATH = "fast-path"
CLASSIFIER_LLM = "llm"

ESCALATION_ACCEPTED = "accepted"
ESCALATION_PROVISIONAL = "provisional"
ESCALATION_UNCLASSIFIED = "unclassified"

PATTERN_NONE = "none"
PATTERN_SINGLE = "single"
PATTERN_MULTI = "multi"
PATTERN_CROSS = "cross"


def pattern_for(systems: List[str]) -> str:
    """Map the number of matched systems to a routing pattern."""
    count = len(systems)
    if count == 0:
        return PATTERN_NONE
    if count == 1:
        return PATTERN_SINGLE
    if count == 2:
        return PATTERN_MULTI
    return PATTERN_CROSS


def _unique(values: List[str]) -> List[str]:
    seen = set()
    out = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


class ClassificationResult(BaseModel):
    """
    Result of classifying one query.

    confidence is 1.0 only for pattern-cache hits (from_cache=True) and
    archetype matches; keyword results stay below 1.0.
    """

    query: str = ""
    signature: str = ""
    systems: List[str] = Field(default_factory=list)
    domains: List[str] = Field(default_factory=list)
    be_clusters: List[str] = Field(default_factory=list)
    se_clusters: List[str] = Field(default_factory=list)
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    pattern: Optional[str] = PATTERN_NONE
    classifier: Literal["fast-path", "llm"] = CLASSIFIER_FAST_PATH
    needs_llm_verification: bool = True
    escalation: Literal["accepted", "provisional", "unclassified"] = ESCALATION_UNCLASSIFIED
    from_cache: bool = False
    archetype_matched: List[str] = Field(default_factory=list)
    archetype_constraints: List[Dict[str, Any]] = Field(default_factory=list)
    prior_boost: float = Field(0.0, ge=0.0)
    suggested_expansions: List[str] = Field(default_factory=list)
    verification_prompt: Optional[str] = None

    @field_validator("systems", "domains", "be_clusters", "se_clusters", "archetype_matched")
    @classmethod
    def dedupe_ids(cls, value: List[str]) -> List[str]:
        return _unique(value)

    def primary_system(self) -> Optional[str]:
        return self.systems[0] if self.systems else None

    def primary_subdomain(self) -> Optional[str]:
        """First subdomain belonging to the primary system, if any."""
        system = self.primary_system()
        if system == "DB" and self.domains:
            return self.domains[0]
        if system == "BE" and self.be_clusters:
            return self.be_clusters[0]
        if system == "SE" and self.se_clusters:
            return self.se_clusters[0]
        return None

    def domain_key(self) -> Optional[str]:
        """
        Key used in the transition table: "SYS" or "SYS/sub".

        Returns None for an empty classification.
        """
        system = self.primary_system()
        if system is None:
            return None
        sub = self.primary_subdomain()
        return f"{system}/{sub}" if sub else system

    def summary(self) -> Dict[str, Any]:
        """Compact form embedded in history and cache entries."""
        return {
            "systems": list(self.systems),
            "domains": list(self.domains),
            "be_clusters": list(self.be_clusters),
            "se_clusters": list(self.se_clusters),
            "pattern": self.pattern,
            "confidence": self.confidence,
            "classifier": self.classifier,
            "archetype_matched": list(self.archetype_matched),
        }


class SessionHistoryEntry(BaseModel):
    """One classification in the session's append-only chain."""

    signature: str
    query: str
    classification: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str
    prev_signature: Optional[str] = None

    def systems(self) -> List[str]:
        systems = self.classification.get("systems") or []
        return [s for s in systems if isinstance(s, str)]

    def domain_key(self) -> Optional[str]:
        try:
            return ClassificationResult.model_validate(self.classification).domain_key()
        except ValidationError:
            return None


class PatternCacheEntry(BaseModel):
    """Cached classification for one signature."""

    classification: Dict[str, Any]
    last_used: str
    hit_count: int = Field(0, ge=0)


class VerificationPayload(BaseModel):
    """
    Classification produced by an external LLM verification pass.

    Schema:
    {"systems": [...], "domains": [...], "be_clusters": [...],
     "se_clusters": [...], "confidence": 0.0-1.0}
    """

    systems: List[str] = Field(default_factory=list)
    domains: List[str] = Field(default_factory=list)
    be_clusters: List[str] = Field(default_factory=list)
    se_clusters: List[str] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)

    @field_validator("systems")
    @classmethod
    def validate_systems(cls, value: List[str]) -> List[str]:
        allowed = {"DB", "BE", "IF", "SE"}
        normalized = [v.strip().upper() for v in value]
        unknown = sorted(set(normalized) - allowed)
        if unknown:
            raise ValueError(f"systems must be drawn from {sorted(allowed)}, got {unknown}")
        return _unique(normalized)


class VerificationError(Exception):
    """Raised when an LLM verification payload fails schema validation."""

    def __init__(self, message: str, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.payload = payload


def validate_verification_payload(payload: Dict[str, Any]) -> VerificationPayload:
    """
    Validate a raw verification payload.

    Raises:
        VerificationError if validation fails.
    """
    try:
        return VerificationPayload.model_validate(payload)
    except ValidationError as exc:
        raise VerificationError(f"Invalid verification payload: {exc}", payload=payload) from exc
