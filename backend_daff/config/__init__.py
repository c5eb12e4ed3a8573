"""
Configuration management for Backend DAFF.

Loads and validates settings from environment variables and the optional
project .env file. Exposes a single source of truth for engine configuration.
"""

from backend_daff.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
