"""
Flag decision engine — vote counting over classified indicators.

Pure and deterministic: the same indicators and confidence always give the
same flag and reasoning. Used by the file, network, transaction and generic
extractors; the text and media paths build their result from the AI judgment
instead.

Precedence (first match wins):
1. any negative indicator and confidence > medium      -> '-'
2. any suspicious indicator, or negative at <= medium  -> '='
3. any positive indicator and confidence > low         -> '+'
4. otherwise                                           -> '=' (insufficient data)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from backend_daff.analysis_engine.models import AnalysisResult, Flag, clamp_confidence
from backend_daff.analysis_engine.rules import Polarity, RuleConfig

INSUFFICIENT_DATA_REASONING = "Insufficient data for conclusive analysis"


@dataclass(frozen=True)
class PolarityCounts:
    positive: int = 0
    negative: int = 0
    suspicious: int = 0
    unclassified: int = 0


def count_polarities(indicators: Sequence[str], rules: RuleConfig) -> PolarityCounts:
    counts = {p: 0 for p in Polarity}
    for indicator in indicators:
        counts[rules.tables.polarity(indicator)] += 1
    return PolarityCounts(
        positive=counts[Polarity.POSITIVE],
        negative=counts[Polarity.NEGATIVE],
        suspicious=counts[Polarity.SUSPICIOUS],
        unclassified=counts[Polarity.UNCLASSIFIED],
    )


def decide(
    indicators: Sequence[str],
    confidence: float,
    category: str,
    rules: RuleConfig,
) -> AnalysisResult:
    """
    Combine indicators and accumulated confidence into one flagged result.

    Args:
        indicators: Indicator names produced by an extractor.
        confidence: Baseline plus boosts; may exceed 1 before clamping.
        category: Extractor name stored on the result (e.g. "network_analysis").
        rules: Rule tables and thresholds.

    Returns:
        AnalysisResult with confidence clamped to [0, 1].
    """
    counts = count_polarities(indicators, rules)
    clamped = clamp_confidence(confidence)
    medium = rules.thresholds.medium
    low = rules.thresholds.low

    if counts.negative > 0 and confidence > medium:
        flag = Flag.MALICIOUS
        reasoning = (
            f"Threat detected: {counts.negative} negative indicators "
            f"with {clamped * 100:.1f}% confidence"
        )
    elif counts.suspicious > 0 or (counts.negative > 0 and confidence <= medium):
        flag = Flag.SUSPICIOUS
        reasoning = (
            f"Suspicious activity: {counts.suspicious} suspicious indicators "
            "requiring investigation"
        )
    elif counts.positive > 0 and confidence > low:
        flag = Flag.SAFE
        reasoning = f"Content appears legitimate: {counts.positive} positive indicators"
    else:
        flag = Flag.SUSPICIOUS
        reasoning = INSUFFICIENT_DATA_REASONING

    return AnalysisResult(
        flag=flag,
        confidence=clamped,
        reasoning=reasoning,
        category=category,
        indicators=tuple(indicators),
    )
