"""
Analysis engine package — indicator extraction and ternary flag decisions.

Turns file, text, network, transaction and media evidence into named
indicators, applies the rule tables and confidence thresholds, and produces
one '+' / '-' / '=' AnalysisResult per input. The classification API itself
(AutomatedAnalyzer) lives in backend_daff.analysis_engine.classifier.
"""

from backend_daff.analysis_engine.models import (
    AnalysisInput,
    AnalysisResult,
    Flag,
    InputKind,
    InputMetadata,
    error_result,
)
from backend_daff.analysis_engine.rules import (
    ConfidenceThresholds,
    JudgmentBands,
    RuleConfig,
    RuleTables,
    default_rule_config,
    load_rule_config,
)
from backend_daff.analysis_engine.reputation import (
    ReputationLookups,
    default_reputation,
    load_reputation,
)
from backend_daff.analysis_engine.decision import decide
from backend_daff.analysis_engine.judgment import (
    JudgmentRequest,
    JudgmentService,
    OpenAIJudgmentService,
)
from backend_daff.analysis_engine.extractors import ExtractionContext, run_extraction

__all__ = [
    "AnalysisInput",
    "AnalysisResult",
    "Flag",
    "InputKind",
    "InputMetadata",
    "error_result",
    "ConfidenceThresholds",
    "JudgmentBands",
    "RuleConfig",
    "RuleTables",
    "default_rule_config",
    "load_rule_config",
    "ReputationLookups",
    "default_reputation",
    "load_reputation",
    "decide",
    "JudgmentRequest",
    "JudgmentService",
    "OpenAIJudgmentService",
    "ExtractionContext",
    "run_extraction",
]
