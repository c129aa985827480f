"""
Runtime configuration.

Thresholds and tuning values are configuration, not constants: every field
can be overridden through an EW_* environment variable (or a .env file
loaded by the application entrypoint).
"""
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from ewrouter.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".cache" / "engineering-workflow"


class Settings(BaseModel):
    """Classifier and resolver settings."""

    cache_dir: Path = Field(DEFAULT_CACHE_DIR, description="Directory for pattern cache and session history")

    # Escalation tiers
    fast_path_threshold: float = Field(0.85, ge=0.0, le=1.0)
    llm_fallback_threshold: float = Field(0.3, ge=0.0, le=1.0)

    # Categorical inclusion
    system_inclusion_threshold: float = Field(0.4, ge=0.0, le=1.0)
    subdomain_inclusion_threshold: float = Field(0.5, ge=0.0, le=1.0)

    # Progressive classification
    progressive_classification: bool = True
    history_window: int = Field(3, ge=1)
    boost_increment: float = Field(0.05, ge=0.0, le=1.0)
    max_boost: float = Field(0.15, ge=0.0, le=1.0)
    max_expansions: int = Field(3, ge=0)

    # Pattern cache
    cache_promotion_hits: int = Field(1, ge=1)

    @model_validator(mode="after")
    def check_threshold_order(self) -> "Settings":
        if self.llm_fallback_threshold >= self.fast_path_threshold:
            raise ValueError(
                "llm_fallback_threshold must be lower than fast_path_threshold "
                f"({self.llm_fallback_threshold} >= {self.fast_path_threshold})"
            )
        return self

    @property
    def pattern_cache_path(self) -> Path:
        return self.cache_dir / "pattern-cache.json"

    @property
    def session_history_path(self) -> Path:
        return self.cache_dir / "session-history.jsonl"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from EW_* environment variables.

        Unset variables fall back to the field defaults.
        """
        env_fields = {
            "cache_dir": "EW_CACHE_DIR",
            "fast_path_threshold": "EW_FAST_PATH_THRESHOLD",
            "llm_fallback_threshold": "EW_LLM_FALLBACK_THRESHOLD",
            "system_inclusion_threshold": "EW_SYSTEM_INCLUSION_THRESHOLD",
            "subdomain_inclusion_threshold": "EW_SUBDOMAIN_INCLUSION_THRESHOLD",
            "history_window": "EW_HISTORY_WINDOW",
            "boost_increment": "EW_BOOST_INCREMENT",
            "max_boost": "EW_MAX_BOOST",
            "max_expansions": "EW_MAX_EXPANSIONS",
            "cache_promotion_hits": "EW_CACHE_PROMOTION_HITS",
        }
        values = {}
        for field_name, env_name in env_fields.items():
            raw = os.getenv(env_name)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()

        # EW_PROGRESSIVE_CLASSIFICATION=0 is the rollback switch
        values["progressive_classification"] = os.getenv("EW_PROGRESSIVE_CLASSIFICATION", "1").strip() != "0"

        return cls.model_validate(values)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Global settings accessor."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
        logger.info(
            "settings_loaded",
            cache_dir=str(_settings.cache_dir),
            fast_path_threshold=_settings.fast_path_threshold,
            llm_fallback_threshold=_settings.llm_fallback_threshold,
            progressive_classification=_settings.progressive_classification,
        )
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (used by tests and after env changes)."""
    global _settings
    _settings = None
