"""
Pydantic models for constraint resolution.

Constraint schema:
{
  "id": "c-1",
  "source": "DB",
  "target": "consistency",
  "value": "strong",
  "priority_hint": "hard" | "soft",      # legacy name: "priority"
  "category": "data_integrity"           # optional, otherwise derived
}
"""
import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

CONFLICT_STRUCTURAL = "structural"
CONFLICT_SEMANTIC = "semantic"

RESOLUTION_AUTO = "resolved-auto"
RESOLUTION_PRIORITY = "resolved-priority"
RESOLUTION_UNRESOLVED = "unresolved"


def canonical_value(value: Any) -> str:
    """
    Canonical form used for value equality.

    Strings compare case-insensitively after trimming; everything else
    compares by its sorted-key JSON encoding.
    """
    if isinstance(value, str):
        return json.dumps(value.strip().casefold())
    return json.dumps(value, sort_keys=True, default=str)


class Constraint(BaseModel):
    """A constraint emitted by one domain agent. Immutable once emitted."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1)
    source: str = Field(..., min_length=1, description="Emitting agent/domain id")
    target: str = Field(..., min_length=1, description="What is constrained")
    value: Any = Field(...)
    priority_hint: Optional[Literal["hard", "soft"]] = Field(
        None,
        validation_alias=AliasChoices("priority_hint", "priority"),
    )
    category: Optional[str] = None
    rationale: Optional[str] = None

    @field_validator("id", "source", "target", mode="before")
    @classmethod
    def coerce_identifier(cls, value: Any) -> Any:
        # Numeric ids appear in hand-written constraint files
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("priority_hint", mode="before")
    @classmethod
    def normalize_hint(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_").replace(" ", "_") or None
        return value

    @property
    def target_key(self) -> str:
        return self.target.casefold()

    @property
    def value_key(self) -> str:
        return canonical_value(self.value)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ConflictRecord(BaseModel):
    """
    A conflict between two or more constraints.

    Created by the detector with resolution "unresolved"; completed by the
    arbiter. resolved_value is only meaningful when resolution != "unresolved".
    """

    conflict_id: str
    constraint_ids: List[str] = Field(..., min_length=2)
    type: Literal["structural", "semantic"]
    targets: List[str] = Field(default_factory=list)
    resolution: Literal["resolved-auto", "resolved-priority", "unresolved"] = RESOLUTION_UNRESOLVED
    resolved_value: Any = None
    winner_id: Optional[str] = None
    rationale: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Output form: resolved_value is omitted entirely when unresolved."""
        out: Dict[str, Any] = {
            "conflict_id": self.conflict_id,
            "constraint_ids": list(self.constraint_ids),
            "type": self.type,
            "targets": list(self.targets),
            "resolution": self.resolution,
        }
        if self.resolution != RESOLUTION_UNRESOLVED:
            out["resolved_value"] = self.resolved_value
            out["winner_id"] = self.winner_id
        if self.rationale:
            out["rationale"] = self.rationale
        return out


class ConstraintInputError(ValueError):
    """Raised when constraint input is unparsable or misses required fields."""
