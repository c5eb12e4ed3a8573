"""
Application settings and environment configuration.

- Load configuration from environment variables and the .env file.
- Validate numeric settings and provide defaults for optional ones.
- Expose typed settings (judgment endpoint, timeouts, monitor interval,
  batch concurrency, rule/reputation file paths) for the analyzer,
  runtime worker and CLI tools.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from backend_daff.config.env import (
    env_float,
    env_int,
    env_path,
    env_str,
    load_daff_env,
)

DEFAULT_AI_JUDGMENT_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_AI_JUDGMENT_MODEL = "gpt-4o"
DEFAULT_AI_TIMEOUT_SEC = 30.0
DEFAULT_MAX_TEXT_CHARS = 2000
DEFAULT_MONITOR_INTERVAL_SEC = 5.0
DEFAULT_BATCH_CONCURRENCY = 8
DEFAULT_ESCALATION_QUEUE_SIZE = 1000
MIN_MONITOR_INTERVAL_SEC = 0.01


@dataclass(frozen=True)
class Settings:
    """Engine settings. Read once at startup and never mutated."""

    rules_path: Path | None = None
    reputation_path: Path | None = None
    ai_judgment_url: str = DEFAULT_AI_JUDGMENT_URL
    ai_api_key: str | None = None
    ai_model: str = DEFAULT_AI_JUDGMENT_MODEL
    ai_timeout_sec: float = DEFAULT_AI_TIMEOUT_SEC
    max_text_chars: int = DEFAULT_MAX_TEXT_CHARS
    monitor_interval_sec: float = DEFAULT_MONITOR_INTERVAL_SEC
    batch_concurrency: int = DEFAULT_BATCH_CONCURRENCY
    escalation_queue_size: int = DEFAULT_ESCALATION_QUEUE_SIZE


def load_settings() -> Settings:
    """Build Settings from the environment (after loading .env). Raises ConfigurationError on bad values."""
    load_daff_env()
    return Settings(
        rules_path=env_path("DAFF_RULES_PATH"),
        reputation_path=env_path("DAFF_REPUTATION_PATH"),
        ai_judgment_url=env_str("AI_JUDGMENT_URL", DEFAULT_AI_JUDGMENT_URL),
        ai_api_key=env_str("OPENAI_API_KEY"),
        ai_model=env_str("AI_JUDGMENT_MODEL", DEFAULT_AI_JUDGMENT_MODEL),
        ai_timeout_sec=env_float("AI_JUDGMENT_TIMEOUT_SEC", DEFAULT_AI_TIMEOUT_SEC, minimum=0.1),
        max_text_chars=env_int("MAX_TEXT_CHARS", DEFAULT_MAX_TEXT_CHARS, minimum=1),
        monitor_interval_sec=env_float(
            "MONITOR_INTERVAL_SEC", DEFAULT_MONITOR_INTERVAL_SEC, minimum=MIN_MONITOR_INTERVAL_SEC
        ),
        batch_concurrency=env_int("BATCH_CONCURRENCY", DEFAULT_BATCH_CONCURRENCY, minimum=1),
        escalation_queue_size=env_int("ESCALATION_QUEUE_SIZE", DEFAULT_ESCALATION_QUEUE_SIZE, minimum=1),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the process-wide settings, loading them on first call.

    Tests that change the environment call get_settings.cache_clear().
    """
    return load_settings()
