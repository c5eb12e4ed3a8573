"""
Core utilities — exception taxonomy and cross-cutting concerns shared by the
analysis engine, alerts and agent worker.
"""

from backend_daff.core.exceptions import (
    ConfigurationError,
    DaffError,
    ExtractionError,
    InvalidInputError,
    JudgmentServiceError,
    JudgmentTimeoutError,
    MonitorStateError,
)

__all__ = [
    "ConfigurationError",
    "DaffError",
    "ExtractionError",
    "InvalidInputError",
    "JudgmentServiceError",
    "JudgmentTimeoutError",
    "MonitorStateError",
]
