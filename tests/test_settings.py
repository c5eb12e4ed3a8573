"""
Tests for environment-driven settings (get_settings / load_settings).
The project .env loader is patched out so only monkeypatched variables count.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from backend_daff.config import settings as settings_module
from backend_daff.config.settings import Settings, get_settings, load_settings
from backend_daff.core.exceptions import ConfigurationError

ENV_VARS = (
    "DAFF_RULES_PATH",
    "DAFF_REPUTATION_PATH",
    "AI_JUDGMENT_URL",
    "OPENAI_API_KEY",
    "AI_JUDGMENT_MODEL",
    "AI_JUDGMENT_TIMEOUT_SEC",
    "MAX_TEXT_CHARS",
    "MONITOR_INTERVAL_SEC",
    "BATCH_CONCURRENCY",
    "ESCALATION_QUEUE_SIZE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(settings_module, "load_daff_env", lambda: None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults():
    assert load_settings() == Settings()
    s = Settings()
    assert s.ai_judgment_url == "https://api.openai.com/v1/chat/completions"
    assert s.monitor_interval_sec == 5.0
    assert s.rules_path is None


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("DAFF_RULES_PATH", str(tmp_path / "rules.json"))
    monkeypatch.setenv("OPENAI_API_KEY", " sk-live ")
    monkeypatch.setenv("AI_JUDGMENT_TIMEOUT_SEC", "12.5")
    monkeypatch.setenv("BATCH_CONCURRENCY", "16")
    s = load_settings()
    assert s.rules_path == Path(tmp_path / "rules.json")
    assert s.ai_api_key == "sk-live"
    assert s.ai_timeout_sec == 12.5
    assert s.batch_concurrency == 16


def test_minimums_are_enforced(monkeypatch):
    monkeypatch.setenv("MONITOR_INTERVAL_SEC", "0")
    monkeypatch.setenv("BATCH_CONCURRENCY", "-3")
    s = load_settings()
    assert s.monitor_interval_sec == 0.01
    assert s.batch_concurrency == 1


@pytest.mark.parametrize(("name", "value"), [("MAX_TEXT_CHARS", "lots"), ("AI_JUDGMENT_TIMEOUT_SEC", "soon")])
def test_malformed_numbers_raise(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError, match=name):
        load_settings()


def test_get_settings_is_cached(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("MAX_TEXT_CHARS", "99")
    assert get_settings() is first
    get_settings.cache_clear()
    assert get_settings().max_text_chars == 99
