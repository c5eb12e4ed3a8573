"""
Indicator extractors — one per input kind.

Vote-counting extractors (file, network, transaction, generic) turn a payload
into named indicators plus an accumulated confidence (baseline 0.5 plus one
boost per signal) and leave the verdict to the decision engine. The text and
media extractors delegate the ternary judgment to the AI judgment service and
build their result directly from its answer.

Each rule is explainable: the indicator name says which rule fired.
"""

from __future__ import annotations

import base64
import hashlib
import mimetypes
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import PurePath
from typing import Callable

from backend_daff.analysis_engine.decision import decide
from backend_daff.analysis_engine.judgment import (
    JudgmentRequest,
    JudgmentService,
    TaskKind,
    ThreatLevel,
    parse_media_judgment,
    parse_text_judgment,
    request_judgment,
)
from backend_daff.analysis_engine.models import (
    AnalysisInput,
    AnalysisResult,
    Extraction,
    FilePayload,
    Flag,
    GenericPayload,
    InputKind,
    MediaPayload,
    NetworkPayload,
    Signal,
    TextPayload,
    TransactionPayload,
)
from backend_daff.analysis_engine.reputation import FiletypeRisk, HashReputation, ReputationLookups
from backend_daff.analysis_engine.rules import RuleConfig
from backend_daff.core.exceptions import JudgmentServiceError
from backend_daff.daff_logging import get_logger

logger = get_logger(__name__)

CATEGORY_FILE = "file_analysis"
CATEGORY_TEXT = "text_analysis"
CATEGORY_NETWORK = "network_analysis"
CATEGORY_TRANSACTION = "transaction_analysis"
CATEGORY_MEDIA = "media_analysis"
CATEGORY_GENERIC = "generic_analysis"

# Network: more suspicious connections than this -> botnet_activity
BOTNET_CONNECTION_COUNT = 5
HIGH_VOLUME_BYTES = 1_000_000

# Transaction: amount and frequency both above -> money_laundering
LAUNDERING_AMOUNT = 10_000
LAUNDERING_FREQUENCY = 10
LARGE_TRANSACTION_AMOUNT = 5_000

GENERIC_CONFIDENCE = 0.3
MEDIA_FAILURE_CONFIDENCE = 0.3

TEXT_FLAGS = {
    ThreatLevel.HIGH: Flag.MALICIOUS,
    ThreatLevel.MEDIUM: Flag.SUSPICIOUS,
    ThreatLevel.LOW: Flag.SUSPICIOUS,
    ThreatLevel.NONE: Flag.SAFE,
}


@dataclass(frozen=True)
class ExtractionContext:
    """Read-only collaborators shared by every extractor call."""

    rules: RuleConfig
    reputation: ReputationLookups
    judgment: JudgmentService
    judgment_timeout_sec: float = 30.0
    max_text_chars: int = 2000
    judgment_executor: ThreadPoolExecutor | None = None
    """Bounded pool for judgment calls; None uses the shared pool."""


# --- file ---


def _hash_signal(file_hash: str, reputation: ReputationLookups) -> Signal:
    verdict = reputation.hash_reputation(file_hash)
    if verdict is HashReputation.KNOWN_BAD:
        return Signal("malware_detected", 0.4)
    if verdict is HashReputation.KNOWN_GOOD:
        return Signal("verified_source", 0.3)
    return Signal("unverified_source", 0.1)


def _filetype_signal(file_type: str, reputation: ReputationLookups) -> Signal | None:
    risk = reputation.filetype_risk(file_type)
    if risk is FiletypeRisk.RISKY:
        return Signal("suspicious_filetype", 0.2)
    if risk is FiletypeRisk.SAFE:
        return Signal("safe_filetype", 0.1)
    return None


def extract_file(inp: AnalysisInput, ctx: ExtractionContext) -> Extraction:
    payload: FilePayload = inp.payload  # type: ignore[assignment]
    metadata = inp.metadata
    signals: list[Signal] = []

    file_hash = metadata.hash if metadata else None
    if not file_hash and payload.content is not None:
        file_hash = hashlib.sha256(payload.content).hexdigest()
    if file_hash:
        signals.append(_hash_signal(file_hash, ctx.reputation))

    file_type = metadata.file_type if metadata else None
    if not file_type and payload.filename:
        file_type = PurePath(payload.filename).suffix or None
    if file_type:
        signal = _filetype_signal(file_type, ctx.reputation)
        if signal is not None:
            signals.append(signal)

    return Extraction.from_signals(signals, ctx.rules.baseline_confidence)


# --- network ---


def extract_network(inp: AnalysisInput, ctx: ExtractionContext) -> Extraction:
    payload: NetworkPayload = inp.payload  # type: ignore[assignment]
    signals: list[Signal] = []

    if payload.connections is not None:
        flagged = sum(
            1
            for c in payload.connections
            if ctx.reputation.is_suspicious_connection(c.ip, c.port)
        )
        if flagged > BOTNET_CONNECTION_COUNT:
            signals.append(Signal("botnet_activity", 0.3))
        elif flagged > 0:
            signals.append(Signal("anomalous_pattern", 0.2))
        else:
            signals.append(Signal("normal_network_pattern", 0.1))

    if payload.traffic is not None:
        if payload.traffic.volume > HIGH_VOLUME_BYTES:
            signals.append(Signal("high_volume_traffic", 0.2))
        else:
            signals.append(Signal("normal_traffic", 0.1))

    return Extraction.from_signals(signals, ctx.rules.baseline_confidence)


# --- transaction ---


def extract_transaction(inp: AnalysisInput, ctx: ExtractionContext) -> Extraction:
    payload: TransactionPayload = inp.payload  # type: ignore[assignment]
    signals: list[Signal] = []

    # amount rules need both a nonzero amount and a nonzero frequency
    if payload.amount and payload.frequency:
        if payload.amount > LAUNDERING_AMOUNT and payload.frequency > LAUNDERING_FREQUENCY:
            signals.append(Signal("money_laundering", 0.4))
        elif payload.amount > LARGE_TRANSACTION_AMOUNT:
            signals.append(Signal("large_transaction", 0.2))
        else:
            signals.append(Signal("normal_transaction", 0.1))

    if payload.addresses is not None:
        if ctx.reputation.address_reputation(payload.addresses):
            signals.append(Signal("blacklisted_address", 0.4))
        else:
            signals.append(Signal("clean_addresses", 0.1))

    return Extraction.from_signals(signals, ctx.rules.baseline_confidence)


# --- generic ---


def extract_generic(inp: AnalysisInput, ctx: ExtractionContext) -> Extraction:
    payload: GenericPayload = inp.payload  # type: ignore[assignment]
    logger.debug("generic_input_received", declared_kind=payload.declared_kind)
    return Extraction(indicators=("unknown_input_type",), confidence=GENERIC_CONFIDENCE)


# --- AI judgment paths ---


def _metadata_dict(inp: AnalysisInput) -> dict:
    return inp.metadata.to_dict() if inp.metadata else {}


def analyze_text(inp: AnalysisInput, ctx: ExtractionContext) -> AnalysisResult:
    """
    Ask the judgment service for a threat level and map it onto a flag:
    high -> '-', medium/low -> '=', none -> '+'.

    Service failures propagate; the analyzer turns them into the error result.
    """
    payload: TextPayload = inp.payload  # type: ignore[assignment]
    text = payload.text[: ctx.max_text_chars]
    raw = request_judgment(
        ctx.judgment,
        JudgmentRequest(TaskKind.TEXT, text, _metadata_dict(inp)),
        ctx.judgment_timeout_sec,
        ctx.judgment_executor,
    )
    judgment = parse_text_judgment(raw)
    return AnalysisResult(
        flag=TEXT_FLAGS[judgment.threat_level],
        confidence=judgment.confidence,
        reasoning=judgment.reasoning or f"AI threat level: {judgment.threat_level.value}",
        category=CATEGORY_TEXT,
        indicators=tuple(judgment.indicators),
    )


def _image_data_url(payload: MediaPayload) -> str | None:
    if payload.content is None:
        return None
    mime = payload.mime_type
    if not mime and payload.filename:
        mime, _ = mimetypes.guess_type(payload.filename)
    if not mime or not mime.startswith("image/"):
        return None
    return f"data:{mime};base64,{base64.b64encode(payload.content).decode('ascii')}"


def analyze_media(inp: AnalysisInput, ctx: ExtractionContext) -> AnalysisResult:
    """
    Ask the judgment service whether the media was manipulated.

    detected and confidence above the malicious band -> '-'; detected or
    confidence above the suspicious band -> '='; otherwise '+'. A failing
    service degrades to an inconclusive '=' at low confidence.
    """
    payload: MediaPayload = inp.payload  # type: ignore[assignment]
    bands = ctx.rules.bands
    request = JudgmentRequest(
        TaskKind.MEDIA,
        f"File: {payload.filename}." if payload.filename else "",
        _metadata_dict(inp),
        image_data_url=_image_data_url(payload),
    )
    try:
        judgment = parse_media_judgment(
            request_judgment(
                ctx.judgment, request, ctx.judgment_timeout_sec, ctx.judgment_executor
            )
        )
    except JudgmentServiceError as e:
        logger.warning("media_judgment_failed", error=str(e), filename=payload.filename)
        return AnalysisResult(
            flag=Flag.SUSPICIOUS,
            confidence=MEDIA_FAILURE_CONFIDENCE,
            reasoning=f"Media analysis inconclusive: {e}",
            category=CATEGORY_MEDIA,
        )

    if judgment.manipulation_detected and judgment.confidence > bands.media_malicious_above:
        flag = Flag.MALICIOUS
    elif judgment.manipulation_detected or judgment.confidence > bands.media_suspicious_above:
        flag = Flag.SUSPICIOUS
    else:
        flag = Flag.SAFE
    return AnalysisResult(
        flag=flag,
        confidence=judgment.confidence,
        reasoning=judgment.reasoning or (
            f"Manipulation detected: {judgment.manipulation_type or 'unspecified'}"
            if judgment.manipulation_detected
            else "No manipulation detected"
        ),
        category=CATEGORY_MEDIA,
        indicators=tuple(judgment.indicators),
    )


VOTE_EXTRACTORS: dict[InputKind, tuple[str, Callable[[AnalysisInput, ExtractionContext], Extraction]]] = {
    InputKind.FILE: (CATEGORY_FILE, extract_file),
    InputKind.NETWORK: (CATEGORY_NETWORK, extract_network),
    InputKind.TRANSACTION: (CATEGORY_TRANSACTION, extract_transaction),
    InputKind.GENERIC: (CATEGORY_GENERIC, extract_generic),
}

JUDGMENT_ANALYZERS: dict[InputKind, Callable[[AnalysisInput, ExtractionContext], AnalysisResult]] = {
    InputKind.TEXT: analyze_text,
    InputKind.MEDIA: analyze_media,
}


def run_extraction(inp: AnalysisInput, ctx: ExtractionContext) -> AnalysisResult:
    """Route one input to its extractor and return the (untimed) result."""
    judged = JUDGMENT_ANALYZERS.get(inp.kind)
    if judged is not None:
        return judged(inp, ctx)
    category, extractor = VOTE_EXTRACTORS[inp.kind]
    extraction = extractor(inp, ctx)
    return decide(extraction.indicators, extraction.confidence, category, ctx.rules)
