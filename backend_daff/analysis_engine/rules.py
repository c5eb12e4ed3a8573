"""
Rule tables and confidence thresholds.

Static catalogs that map indicator names to a polarity, the three decision
thresholds and the AI-judgment confidence bands. Everything is a frozen
dataclass built once at startup and injected into the analyzer; there is no
module-level mutable rule state. Defaults can be overridden from a JSON file
(DAFF_RULES_PATH); a missing or invalid file is a fatal ConfigurationError.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from backend_daff.core.exceptions import ConfigurationError
from backend_daff.daff_logging import get_logger

logger = get_logger(__name__)

DEFAULT_POSITIVE_INDICATORS = frozenset({
    "authentic_signature",
    "verified_source",
    "legitimate_transaction",
    "normal_network_pattern",
    "authentic_media",
})
DEFAULT_NEGATIVE_INDICATORS = frozenset({
    "malware_detected",
    "phishing_attempt",
    "deepfake_confirmed",
    "money_laundering",
    "botnet_activity",
})
DEFAULT_SUSPICIOUS_INDICATORS = frozenset({
    "anomalous_pattern",
    "unverified_source",
    "unusual_transaction",
    "modified_metadata",
    "partial_match",
})

HIGH_THRESHOLD = 0.85
MEDIUM_THRESHOLD = 0.65
LOW_THRESHOLD = 0.45

# Media judgment: detected above this -> '-'; detected or above the lower band -> '='
MEDIA_MALICIOUS_ABOVE = 0.8
MEDIA_SUSPICIOUS_ABOVE = 0.4

BASELINE_CONFIDENCE = 0.5


class Polarity(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    SUSPICIOUS = "suspicious"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class ConfidenceThresholds:
    high: float = HIGH_THRESHOLD
    medium: float = MEDIUM_THRESHOLD
    low: float = LOW_THRESHOLD

    def __post_init__(self) -> None:
        if not (0.0 < self.low < self.medium < self.high <= 1.0):
            raise ConfigurationError(
                "thresholds must satisfy 0 < low < medium < high <= 1 "
                f"(got low={self.low}, medium={self.medium}, high={self.high})"
            )


@dataclass(frozen=True)
class JudgmentBands:
    """Confidence cut-offs applied to AI media judgments."""

    media_malicious_above: float = MEDIA_MALICIOUS_ABOVE
    media_suspicious_above: float = MEDIA_SUSPICIOUS_ABOVE

    def __post_init__(self) -> None:
        if not (0.0 <= self.media_suspicious_above <= self.media_malicious_above <= 1.0):
            raise ConfigurationError(
                "judgment bands must satisfy 0 <= media_suspicious_above <= media_malicious_above <= 1"
            )


@dataclass(frozen=True)
class RuleTables:
    positive: frozenset[str] = DEFAULT_POSITIVE_INDICATORS
    negative: frozenset[str] = DEFAULT_NEGATIVE_INDICATORS
    suspicious: frozenset[str] = DEFAULT_SUSPICIOUS_INDICATORS

    def __post_init__(self) -> None:
        overlap = (
            (self.positive & self.negative)
            | (self.positive & self.suspicious)
            | (self.negative & self.suspicious)
        )
        if overlap:
            raise ConfigurationError(
                f"indicator polarity lists must be disjoint; overlapping: {sorted(overlap)}"
            )

    def polarity(self, indicator: str) -> Polarity:
        if indicator in self.negative:
            return Polarity.NEGATIVE
        if indicator in self.suspicious:
            return Polarity.SUSPICIOUS
        if indicator in self.positive:
            return Polarity.POSITIVE
        return Polarity.UNCLASSIFIED


@dataclass(frozen=True)
class RuleConfig:
    """Everything the decision engine and extractors read; shared read-only across threads."""

    tables: RuleTables = field(default_factory=RuleTables)
    thresholds: ConfidenceThresholds = field(default_factory=ConfidenceThresholds)
    bands: JudgmentBands = field(default_factory=JudgmentBands)
    baseline_confidence: float = BASELINE_CONFIDENCE


def default_rule_config() -> RuleConfig:
    return RuleConfig()


def _indicator_set(data: dict[str, Any], key: str, default: frozenset[str]) -> frozenset[str]:
    if key not in data:
        return default
    values = data[key]
    if not isinstance(values, list):
        raise ConfigurationError(f"rule table '{key}' must be a list of indicator names")
    return frozenset(str(v).strip() for v in values if str(v).strip())


def _float_section(data: dict[str, Any], key: str) -> dict[str, float]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"'{key}' must be an object")
    try:
        return {str(k): float(v) for k, v in section.items()}
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"'{key}' values must be numbers") from e


def _only_known(section: dict[str, float], allowed: Iterable[str], name: str) -> dict[str, float]:
    unknown = set(section) - set(allowed)
    if unknown:
        raise ConfigurationError(f"unknown {name} keys: {sorted(unknown)}")
    return section


def load_rule_config(path: str | Path) -> RuleConfig:
    """
    Load a rule table JSON file. Missing sections fall back to defaults.

    Raises ConfigurationError when the file is missing, unparseable, or the
    resulting tables/thresholds are inconsistent.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"rule table file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"rule table file unreadable: {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"rule table file must contain a JSON object: {path}")

    tables = RuleTables(
        positive=_indicator_set(data, "positive", DEFAULT_POSITIVE_INDICATORS),
        negative=_indicator_set(data, "negative", DEFAULT_NEGATIVE_INDICATORS),
        suspicious=_indicator_set(data, "suspicious", DEFAULT_SUSPICIOUS_INDICATORS),
    )
    thresholds = ConfidenceThresholds(
        **_only_known(_float_section(data, "thresholds"), ("high", "medium", "low"), "thresholds")
    )
    bands = JudgmentBands(
        **_only_known(
            _float_section(data, "judgment_bands"),
            ("media_malicious_above", "media_suspicious_above"),
            "judgment_bands",
        )
    )
    config = RuleConfig(tables=tables, thresholds=thresholds, bands=bands)
    logger.info(
        "rule_config_loaded",
        path=str(path),
        positive=len(tables.positive),
        negative=len(tables.negative),
        suspicious=len(tables.suspicious),
        thresholds={"high": thresholds.high, "medium": thresholds.medium, "low": thresholds.low},
    )
    return config
