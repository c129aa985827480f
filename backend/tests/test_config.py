"""
Unit tests for runtime settings.
"""
from pathlib import Path

import pytest
from pydantic import ValidationError

from ewrouter.core.config import Settings, get_settings, reset_settings


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    for name in (
        "EW_CACHE_DIR",
        "EW_FAST_PATH_THRESHOLD",
        "EW_LLM_FALLBACK_THRESHOLD",
        "EW_PROGRESSIVE_CLASSIFICATION",
        "EW_CACHE_PROMOTION_HITS",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


def test_defaults():
    settings = Settings.from_env()
    assert settings.fast_path_threshold == 0.85
    assert settings.llm_fallback_threshold == 0.3
    assert settings.history_window == 3
    assert settings.max_boost == 0.15
    assert settings.cache_promotion_hits == 1
    assert settings.progressive_classification is True


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("EW_CACHE_DIR", str(tmp_path))
    monkeypatch.setenv("EW_FAST_PATH_THRESHOLD", "0.9")
    monkeypatch.setenv("EW_CACHE_PROMOTION_HITS", "3")

    settings = Settings.from_env()

    assert settings.cache_dir == Path(tmp_path)
    assert settings.fast_path_threshold == 0.9
    assert settings.cache_promotion_hits == 3
    assert settings.pattern_cache_path == Path(tmp_path) / "pattern-cache.json"
    assert settings.session_history_path == Path(tmp_path) / "session-history.jsonl"


def test_progressive_rollback_switch(monkeypatch):
    monkeypatch.setenv("EW_PROGRESSIVE_CLASSIFICATION", "0")
    assert Settings.from_env().progressive_classification is False


def test_threshold_order_validated(monkeypatch):
    """Test that the LLM floor must stay below the fast-path threshold."""
    monkeypatch.setenv("EW_FAST_PATH_THRESHOLD", "0.3")
    monkeypatch.setenv("EW_LLM_FALLBACK_THRESHOLD", "0.5")
    with pytest.raises(ValidationError):
        Settings.from_env()


def test_get_settings_is_cached(monkeypatch, tmp_path):
    monkeypatch.setenv("EW_CACHE_DIR", str(tmp_path))
    first = get_settings()
    monkeypatch.setenv("EW_CACHE_DIR", str(tmp_path / "other"))
    assert get_settings() is first

    reset_settings()
    assert get_settings().cache_dir == Path(tmp_path) / "other"
