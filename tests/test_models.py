"""
Tests for the input/result data model: tagged payload validation, wire-shape
parsing (AnalysisInput.from_dict), confidence clamping and serialization.
"""

from __future__ import annotations

import base64
import math
from datetime import datetime, timezone

import pytest

from backend_daff.analysis_engine.models import (
    AnalysisInput,
    AnalysisResult,
    Connection,
    Extraction,
    FilePayload,
    Flag,
    GenericPayload,
    InputKind,
    InputMetadata,
    MediaPayload,
    NetworkPayload,
    Signal,
    TextPayload,
    TransactionPayload,
    clamp_confidence,
    error_result,
)
from backend_daff.core.exceptions import InvalidInputError


def test_flag_values_are_ternary_symbols():
    assert {f.value for f in Flag} == {"+", "-", "="}


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(-0.2, 0.0), (0.0, 0.0), (0.42, 0.42), (1.0, 1.0), (1.3, 1.0), (math.nan, 0.0)],
)
def test_clamp_confidence(raw, expected):
    assert clamp_confidence(raw) == expected


def test_payload_must_match_kind():
    """A text input carrying a network payload is rejected at construction."""
    with pytest.raises(InvalidInputError):
        AnalysisInput(InputKind.TEXT, NetworkPayload())


def test_extraction_from_signals_accumulates_boosts():
    ex = Extraction.from_signals([Signal("a", 0.4), Signal("b", 0.2)], baseline=0.5)
    assert ex.indicators == ("a", "b")
    assert ex.confidence == pytest.approx(1.1)


def test_from_dict_text_accepts_type_or_kind():
    by_type = AnalysisInput.from_dict({"type": "text", "data": "hello"})
    by_kind = AnalysisInput.from_dict({"kind": "TEXT", "data": {"text": "hello"}})
    assert by_type == by_kind
    assert by_type.payload == TextPayload("hello")


def test_from_dict_unknown_kind_becomes_generic():
    inp = AnalysisInput.from_dict({"type": "unknown", "data": {"x": 1}})
    assert inp.kind is InputKind.GENERIC
    assert isinstance(inp.payload, GenericPayload)
    assert inp.payload.declared_kind == "unknown"
    assert inp.payload.data == {"x": 1}


def test_from_dict_missing_kind_raises():
    with pytest.raises(InvalidInputError):
        AnalysisInput.from_dict({"data": "hello"})


def test_from_dict_network_payload():
    inp = AnalysisInput.from_dict(
        {
            "type": "network",
            "data": {
                "connections": [{"ip": "10.0.0.50", "port": "8080"}],
                "traffic": {"volume": 1200},
            },
        }
    )
    assert inp.payload.connections == (Connection("10.0.0.50", 8080),)
    assert inp.payload.traffic.volume == 1200


def test_from_dict_network_bad_connection_raises():
    with pytest.raises(InvalidInputError):
        AnalysisInput.from_dict({"type": "network", "data": {"connections": [{"ip": "1.2.3.4"}]}})


def test_from_dict_transaction_payload():
    inp = AnalysisInput.from_dict(
        {"type": "transaction", "data": {"amount": "15000", "frequency": 25, "addresses": ["a", "b"]}}
    )
    assert inp.payload == TransactionPayload(amount=15000.0, frequency=25, addresses=("a", "b"))


def test_from_dict_transaction_non_numeric_amount_raises():
    with pytest.raises(InvalidInputError):
        AnalysisInput.from_dict({"type": "transaction", "data": {"amount": "lots"}})


def test_from_dict_file_metadata_aliases_and_base64():
    content = b"MZ\x90\x00"
    inp = AnalysisInput.from_dict(
        {
            "type": "file",
            "data": {"filename": "tool.exe", "content_base64": base64.b64encode(content).decode()},
            "metadata": {"fileType": "exe", "size": "4", "source": "upload"},
        }
    )
    assert inp.payload == FilePayload(filename="tool.exe", content=content)
    assert inp.metadata == InputMetadata(source="upload", file_type="exe", size=4, hash=None)


def test_from_dict_invalid_base64_raises():
    with pytest.raises(InvalidInputError):
        AnalysisInput.from_dict({"type": "file", "data": {"content_base64": "***"}})


def test_from_dict_media_string_is_filename():
    inp = AnalysisInput.from_dict({"type": "media", "data": "clip.mp4"})
    assert inp.payload == MediaPayload(filename="clip.mp4")


def test_result_to_dict():
    ts = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    result = AnalysisResult(
        flag=Flag.MALICIOUS,
        confidence=0.912345,
        reasoning="r",
        category="network_analysis",
        timestamp=ts,
        processing_time_ms=1.234,
        indicators=("botnet_activity",),
    )
    assert result.to_dict() == {
        "flag": "-",
        "confidence": 0.9123,
        "reasoning": "r",
        "category": "network_analysis",
        "timestamp": ts.isoformat(),
        "processingTime": 1.23,
        "indicators": ["botnet_activity"],
    }


def test_error_result_shape():
    result = error_result(RuntimeError("boom"))
    assert result.flag is Flag.SUSPICIOUS
    assert result.confidence < 0.5
    assert result.category == "error"
    assert result.reasoning == "Analysis failed: boom"
