"""
Application-level exceptions.

- ConfigurationError is fatal at startup (rule tables, reputation data, settings).
- ExtractionError and its judgment-service subclasses are raised inside the
  extractor layer and converted into degraded results by the analyzer; they
  never reach a classify() caller.
- MonitorStateError guards the Idle -> Running -> Stopped monitor lifecycle.
"""

from __future__ import annotations


class DaffError(Exception):
    """Base class for all Backend DAFF errors."""


class ConfigurationError(DaffError):
    """Missing or invalid configuration (rule table, reputation file, env value)."""


class ExtractionError(DaffError):
    """Indicators could not be derived from an input."""


class JudgmentServiceError(ExtractionError):
    """The AI judgment service failed or returned an unusable judgment."""


class JudgmentTimeoutError(JudgmentServiceError):
    """The AI judgment service did not answer within the bounded timeout."""

    def __init__(self, timeout_sec: float) -> None:
        super().__init__(f"judgment service timed out after {timeout_sec:g}s")
        self.timeout_sec = timeout_sec


class MonitorStateError(DaffError):
    """Illegal real-time monitor transition (e.g. restarting a stopped handle)."""


class InvalidInputError(DaffError, ValueError):
    """A raw input record could not be turned into an AnalysisInput."""
