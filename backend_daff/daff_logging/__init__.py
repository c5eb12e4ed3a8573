"""
Structured logging for Backend DAFF.

JSON logs with timestamp, event_type, category and flag fields.
Use get_logger() in all engine modules for aggregation-friendly output.
"""

from backend_daff.daff_logging.logger import bind_analysis, get_logger

__all__ = ["bind_analysis", "get_logger"]
