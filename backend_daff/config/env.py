"""
Environment variable loading for Backend DAFF.

- Loads .env from the project root when available.
- Typed readers that turn malformed values into ConfigurationError so a bad
  deployment fails at startup rather than on the first analysis.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from backend_daff.core.exceptions import ConfigurationError

# Project root: config is backend_daff/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"


def load_daff_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides real env vars."""
    load_dotenv(_ENV_PATH, override=False)


def env_str(name: str, default: str | None = None) -> str | None:
    """Return a stripped env value, or default when unset/blank."""
    raw = (os.getenv(name) or "").strip()
    return raw if raw else default


def env_float(name: str, default: float, *, minimum: float | None = None) -> float:
    raw = env_str(name)
    if raw is None:
        value = default
    else:
        try:
            value = float(raw)
        except ValueError as e:
            raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if minimum is not None:
        value = max(minimum, value)
    return value


def env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = env_str(name)
    if raw is None:
        value = default
    else:
        try:
            value = int(raw)
        except ValueError as e:
            raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if minimum is not None:
        value = max(minimum, value)
    return value


def env_path(name: str) -> Path | None:
    raw = env_str(name)
    return Path(raw) if raw else None
