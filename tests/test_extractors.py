"""
Tests for the per-kind extractors: file/network/transaction/generic vote
counting and the text/media AI judgment paths (scripted judgment service).
"""

from __future__ import annotations

import hashlib
from dataclasses import replace

import pytest

from backend_daff.analysis_engine.extractors import (
    analyze_media,
    analyze_text,
    extract_file,
    extract_generic,
    extract_network,
    extract_transaction,
    run_extraction,
)
from backend_daff.analysis_engine.judgment import TaskKind
from backend_daff.analysis_engine.models import (
    AnalysisInput,
    Connection,
    FilePayload,
    Flag,
    GenericPayload,
    InputKind,
    InputMetadata,
    MediaPayload,
    NetworkPayload,
    TextPayload,
    TrafficSummary,
    TransactionPayload,
)
from backend_daff.analysis_engine.reputation import ReputationLookups
from backend_daff.core.exceptions import JudgmentServiceError, JudgmentTimeoutError

BLACKLISTED = "1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2"


def _file(filename=None, content=None, **meta):
    return AnalysisInput(
        InputKind.FILE,
        FilePayload(filename=filename, content=content),
        InputMetadata(**meta) if meta else None,
    )


def _network(connections=None, volume=None):
    return AnalysisInput(
        InputKind.NETWORK,
        NetworkPayload(
            connections=tuple(Connection(ip, port) for ip, port in connections) if connections is not None else None,
            traffic=TrafficSummary(volume) if volume is not None else None,
        ),
    )


def _transaction(amount=None, frequency=None, addresses=None):
    return AnalysisInput(
        InputKind.TRANSACTION,
        TransactionPayload(
            amount=amount,
            frequency=frequency,
            addresses=tuple(addresses) if addresses is not None else None,
        ),
    )


def _media(filename="photo.png", content=None, mime_type=None):
    return AnalysisInput(InputKind.MEDIA, MediaPayload(filename=filename, content=content, mime_type=mime_type))


# --- file ---


def test_file_known_bad_hash_and_risky_type(context):
    ex = extract_file(_file(hash="bad_hash_1", file_type="exe"), context)
    assert ex.indicators == ("malware_detected", "suspicious_filetype")
    assert ex.confidence == pytest.approx(1.1)


def test_file_known_good_hash_and_safe_type(context):
    result = run_extraction(_file(hash="good_hash_1", file_type="pdf"), context)
    assert result.indicators == ("verified_source", "safe_filetype")
    assert result.flag is Flag.SAFE
    assert result.category == "file_analysis"


def test_file_unknown_hash_is_unverified(context):
    result = run_extraction(_file(hash="0f0f", file_type="txt"), context)
    assert result.indicators == ("unverified_source", "safe_filetype")
    assert result.flag is Flag.SUSPICIOUS


def test_file_hash_computed_from_content(context):
    """Without metadata.hash the SHA-256 of the content is checked."""
    content = b"evil payload"
    ctx = replace(
        context,
        reputation=ReputationLookups(known_bad_hashes=frozenset({hashlib.sha256(content).hexdigest()})),
    )
    ex = extract_file(_file(filename="payload.bin", content=content), ctx)
    assert ex.indicators == ("malware_detected",)


def test_file_type_from_filename_extension(context):
    ex = extract_file(_file(filename="invoice.EXE"), context)
    assert ex.indicators == ("suspicious_filetype",)
    assert ex.confidence == pytest.approx(0.7)


def test_file_without_hash_or_type(context):
    ex = extract_file(_file(), context)
    assert ex.indicators == ()
    assert ex.confidence == 0.5


# --- network ---


def test_network_botnet_scenario(context):
    """20 connections to a known-suspicious IP plus 2 MB of traffic is a threat."""
    inp = _network([("192.168.1.100", 443)] * 20, volume=2_000_000)
    result = run_extraction(inp, context)
    assert result.indicators == ("botnet_activity", "high_volume_traffic")
    assert result.flag is Flag.MALICIOUS
    assert result.confidence == pytest.approx(1.0)
    assert result.category == "network_analysis"


@pytest.mark.parametrize(
    ("count", "indicator"),
    [(0, "normal_network_pattern"), (1, "anomalous_pattern"), (5, "anomalous_pattern"), (6, "botnet_activity")],
)
def test_network_suspicious_connection_bands(context, count, indicator):
    conns = [("8.8.8.8", 22)] * count + [("8.8.8.8", 8443)] * 3
    ex = extract_network(_network(conns), context)
    assert ex.indicators == (indicator,)


def test_network_normal_traffic_is_safe(context):
    result = run_extraction(_network([("8.8.8.8", 8443)], volume=500), context)
    assert result.indicators == ("normal_network_pattern", "normal_traffic")
    assert result.flag is Flag.SAFE


def test_network_empty_payload(context):
    result = run_extraction(_network(), context)
    assert result.indicators == ()
    assert result.flag is Flag.SUSPICIOUS


# --- transaction ---


def test_transaction_money_laundering_scenario(context):
    result = run_extraction(_transaction(amount=15000, frequency=25), context)
    assert result.indicators == ("money_laundering",)
    assert result.confidence == pytest.approx(0.9)
    assert result.flag is Flag.MALICIOUS


def test_transaction_amount_without_frequency_adds_no_amount_indicator(context):
    ex = extract_transaction(_transaction(amount=15000), context)
    assert ex.indicators == ()
    assert ex.confidence == pytest.approx(0.5)


def test_transaction_zero_amount_adds_no_amount_indicator(context):
    """A zero amount is treated like a missing one, even with a frequency."""
    ex = extract_transaction(_transaction(amount=0, frequency=3), context)
    assert ex.indicators == ()


def test_transaction_large_amount_with_frequency(context):
    ex = extract_transaction(_transaction(amount=15000, frequency=2), context)
    assert ex.indicators == ("large_transaction",)


def test_transaction_small_amount(context):
    ex = extract_transaction(_transaction(amount=5000, frequency=50), context)
    assert ex.indicators == ("normal_transaction",)


def test_transaction_blacklisted_address(context):
    ex = extract_transaction(_transaction(amount=100, addresses=["clean", BLACKLISTED]), context)
    assert ex.indicators == ("blacklisted_address",)
    assert ex.confidence == pytest.approx(0.9)


def test_transaction_blacklisted_address_with_activity(context):
    ex = extract_transaction(
        _transaction(amount=100, frequency=1, addresses=["clean", BLACKLISTED]), context
    )
    assert ex.indicators == ("normal_transaction", "blacklisted_address")
    assert ex.confidence == pytest.approx(1.0)


def test_transaction_clean_addresses(context):
    ex = extract_transaction(_transaction(addresses=["a", "b"]), context)
    assert ex.indicators == ("clean_addresses",)


# --- generic ---


def test_generic_input(context):
    inp = AnalysisInput(InputKind.GENERIC, GenericPayload(data={}, declared_kind="unknown"))
    ex = extract_generic(inp, context)
    assert ex.indicators == ("unknown_input_type",)
    assert ex.confidence == 0.3


# --- text ---


@pytest.mark.parametrize(
    ("level", "flag"),
    [("high", Flag.MALICIOUS), ("medium", Flag.SUSPICIOUS), ("low", Flag.SUSPICIOUS), ("none", Flag.SAFE)],
)
def test_text_threat_level_mapping(context, fake_judgment, level, flag):
    fake_judgment.response = {
        "threat_level": level,
        "confidence": 0.77,
        "indicators": ["urgency"],
        "reasoning": "model says so",
    }
    result = analyze_text(AnalysisInput(InputKind.TEXT, TextPayload("hello")), context)
    assert result.flag is flag
    assert result.confidence == pytest.approx(0.77)
    assert result.reasoning == "model says so"
    assert result.indicators == ("urgency",)
    assert result.category == "text_analysis"


def test_text_truncated_before_judgment(context, fake_judgment):
    ctx = replace(context, max_text_chars=10)
    analyze_text(AnalysisInput(InputKind.TEXT, TextPayload("x" * 50)), ctx)
    request = fake_judgment.requests[0]
    assert request.task_kind is TaskKind.TEXT
    assert request.content == "x" * 10


def test_text_service_failure_propagates(context, make_judgment):
    ctx = replace(context, judgment=make_judgment(error=RuntimeError("upstream down")))
    with pytest.raises(JudgmentServiceError, match="upstream down"):
        analyze_text(AnalysisInput(InputKind.TEXT, TextPayload("hello")), ctx)


def test_text_service_timeout(context, make_judgment):
    ctx = replace(context, judgment=make_judgment(delay_sec=1.0), judgment_timeout_sec=0.05)
    with pytest.raises(JudgmentTimeoutError):
        analyze_text(AnalysisInput(InputKind.TEXT, TextPayload("hello")), ctx)


# --- media ---


@pytest.mark.parametrize(
    ("detected", "confidence", "flag"),
    [
        (True, 0.9, Flag.MALICIOUS),
        (True, 0.8, Flag.SUSPICIOUS),
        (True, 0.2, Flag.SUSPICIOUS),
        (False, 0.6, Flag.SUSPICIOUS),
        (False, 0.4, Flag.SAFE),
    ],
)
def test_media_bands(context, fake_judgment, detected, confidence, flag):
    fake_judgment.response = {"manipulation_detected": detected, "confidence": confidence}
    result = analyze_media(_media(), context)
    assert result.flag is flag
    assert result.confidence == pytest.approx(confidence)
    assert result.category == "media_analysis"


def test_media_failure_degrades(context, make_judgment):
    ctx = replace(context, judgment=make_judgment(error=RuntimeError("quota exceeded")))
    result = analyze_media(_media(), ctx)
    assert result.flag is Flag.SUSPICIOUS
    assert result.confidence <= 0.3
    assert result.category == "media_analysis"
    assert "quota exceeded" in result.reasoning


def test_media_invalid_judgment_degrades(context, fake_judgment):
    fake_judgment.response = {"confidence": 0.9}
    result = analyze_media(_media(), context)
    assert result.flag is Flag.SUSPICIOUS
    assert result.reasoning.startswith("Media analysis inconclusive")


def test_media_image_bytes_sent_as_data_url(context, fake_judgment):
    fake_judgment.response = {"manipulation_detected": False, "confidence": 0.1}
    analyze_media(_media(filename="photo.png", content=b"\x89PNG"), context)
    request = fake_judgment.requests[0]
    assert request.task_kind is TaskKind.MEDIA
    assert request.image_data_url.startswith("data:image/png;base64,")


def test_media_video_has_no_image_payload(context, fake_judgment):
    fake_judgment.response = {"manipulation_detected": False, "confidence": 0.1}
    analyze_media(_media(filename="clip.mp4", content=b"\x00\x00"), context)
    assert fake_judgment.requests[0].image_data_url is None
