"""
Data model for automated evidence classification.

AnalysisInput is a tagged union: the kind selects exactly one payload
dataclass, so every extractor receives a typed payload. AnalysisResult is the
single output shape shared by the vote-counting and AI-judgment paths.
All types are frozen; an input is immutable once submitted.
"""

from __future__ import annotations

import base64
import binascii
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Union

from backend_daff.core.exceptions import InvalidInputError


class InputKind(str, Enum):
    FILE = "file"
    TEXT = "text"
    NETWORK = "network"
    TRANSACTION = "transaction"
    MEDIA = "media"
    GENERIC = "generic"


class Flag(str, Enum):
    """Ternary classification outcome."""

    SAFE = "+"
    MALICIOUS = "-"
    SUSPICIOUS = "="


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score into [0, 1]. NaN counts as no confidence."""
    value = float(value)
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class InputMetadata:
    source: str | None = None
    file_type: str | None = None
    size: int | None = None
    hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "fileType": self.file_type,
            "size": self.size,
            "hash": self.hash,
        }


@dataclass(frozen=True)
class FilePayload:
    filename: str | None = None
    content: bytes | None = None


@dataclass(frozen=True)
class TextPayload:
    text: str


@dataclass(frozen=True)
class Connection:
    ip: str
    port: int


@dataclass(frozen=True)
class TrafficSummary:
    volume: int
    """Observed traffic volume in bytes."""


@dataclass(frozen=True)
class NetworkPayload:
    connections: tuple[Connection, ...] | None = None
    traffic: TrafficSummary | None = None


@dataclass(frozen=True)
class TransactionPayload:
    amount: float | None = None
    frequency: int | None = None
    addresses: tuple[str, ...] | None = None


@dataclass(frozen=True)
class MediaPayload:
    filename: str | None = None
    content: bytes | None = None
    mime_type: str | None = None


@dataclass(frozen=True)
class GenericPayload:
    data: Any = None
    declared_kind: str = InputKind.GENERIC.value
    """The kind name the caller submitted (kept for logging and reasoning)."""


Payload = Union[
    FilePayload,
    TextPayload,
    NetworkPayload,
    TransactionPayload,
    MediaPayload,
    GenericPayload,
]

PAYLOAD_TYPES: dict[InputKind, type] = {
    InputKind.FILE: FilePayload,
    InputKind.TEXT: TextPayload,
    InputKind.NETWORK: NetworkPayload,
    InputKind.TRANSACTION: TransactionPayload,
    InputKind.MEDIA: MediaPayload,
    InputKind.GENERIC: GenericPayload,
}


@dataclass(frozen=True)
class AnalysisInput:
    """One piece of evidence submitted for classification."""

    kind: InputKind
    payload: Payload
    metadata: InputMetadata | None = None

    def __post_init__(self) -> None:
        expected = PAYLOAD_TYPES[self.kind]
        if not isinstance(self.payload, expected):
            raise InvalidInputError(
                f"{self.kind.value} input requires {expected.__name__}, "
                f"got {type(self.payload).__name__}"
            )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> AnalysisInput:
        """
        Build an input from the wire shape {"type"|"kind", "data", "metadata"}.

        Unknown kinds become generic inputs that remember the submitted kind.
        Raises InvalidInputError when the record cannot be parsed.
        """
        if not isinstance(raw, Mapping):
            raise InvalidInputError("input record must be an object")
        kind_name = str(raw.get("kind") or raw.get("type") or "").strip().lower()
        if not kind_name:
            raise InvalidInputError("input record needs a 'type' or 'kind'")
        data = raw.get("data", raw.get("payload"))
        metadata = _parse_metadata(raw.get("metadata"))
        try:
            kind = InputKind(kind_name)
        except ValueError:
            return cls(InputKind.GENERIC, GenericPayload(data=data, declared_kind=kind_name), metadata)
        parser = _PAYLOAD_PARSERS[kind]
        return cls(kind, parser(data), metadata)


@dataclass(frozen=True)
class Signal:
    """One indicator plus the confidence boost it contributes."""

    indicator: str
    boost: float


@dataclass(frozen=True)
class Extraction:
    """Indicators derived from one input and the accumulated (unclamped) confidence."""

    indicators: tuple[str, ...]
    confidence: float

    @classmethod
    def from_signals(cls, signals: list[Signal], baseline: float) -> Extraction:
        return cls(
            indicators=tuple(s.indicator for s in signals),
            confidence=baseline + sum(s.boost for s in signals),
        )


@dataclass(frozen=True)
class AnalysisResult:
    flag: Flag
    confidence: float
    reasoning: str
    category: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processing_time_ms: float = 0.0
    indicators: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "flag": self.flag.value,
            "confidence": round(self.confidence, 4),
            "reasoning": self.reasoning,
            "category": self.category,
            "timestamp": self.timestamp.isoformat(),
            "processingTime": round(self.processing_time_ms, 2),
            "indicators": list(self.indicators),
        }


def _parse_metadata(raw: Any) -> InputMetadata | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise InvalidInputError("metadata must be an object")
    size = raw.get("size")
    try:
        size = int(size) if size is not None else None
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"metadata.size must be an integer, got {size!r}") from e
    file_type = raw.get("fileType", raw.get("file_type"))
    return InputMetadata(
        source=_opt_str(raw.get("source")),
        file_type=_opt_str(file_type),
        size=size,
        hash=_opt_str(raw.get("hash")),
    )


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _content_bytes(data: Mapping[str, Any]) -> bytes | None:
    """Raw content from 'content_base64' (decoded) or 'content' (UTF-8 text)."""
    encoded = data.get("content_base64", data.get("contentBase64"))
    if encoded is not None:
        try:
            return base64.b64decode(str(encoded), validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidInputError("content_base64 is not valid base64") from e
    content = data.get("content")
    if content is None:
        return None
    if isinstance(content, bytes):
        return content
    return str(content).encode("utf-8")


def _parse_file(data: Any) -> FilePayload:
    if data is None:
        return FilePayload()
    if isinstance(data, bytes):
        return FilePayload(content=data)
    if isinstance(data, str):
        return FilePayload(content=data.encode("utf-8"))
    if isinstance(data, Mapping):
        return FilePayload(
            filename=_opt_str(data.get("filename", data.get("name"))),
            content=_content_bytes(data),
        )
    raise InvalidInputError("file data must be a string, bytes or an object")


def _parse_text(data: Any) -> TextPayload:
    if isinstance(data, str):
        return TextPayload(text=data)
    if isinstance(data, Mapping) and isinstance(data.get("text"), str):
        return TextPayload(text=data["text"])
    raise InvalidInputError("text data must be a string or an object with 'text'")


def _parse_network(data: Any) -> NetworkPayload:
    if not isinstance(data, Mapping):
        raise InvalidInputError("network data must be an object")
    connections = None
    raw_connections = data.get("connections")
    if raw_connections is not None:
        if not isinstance(raw_connections, list):
            raise InvalidInputError("network connections must be a list")
        try:
            connections = tuple(
                Connection(ip=str(c["ip"]), port=int(c["port"])) for c in raw_connections
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInputError("each connection needs 'ip' and integer 'port'") from e
    traffic = None
    raw_traffic = data.get("traffic")
    if raw_traffic is not None:
        try:
            traffic = TrafficSummary(volume=int(raw_traffic["volume"]))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInputError("traffic needs an integer 'volume'") from e
    return NetworkPayload(connections=connections, traffic=traffic)


def _parse_transaction(data: Any) -> TransactionPayload:
    if not isinstance(data, Mapping):
        raise InvalidInputError("transaction data must be an object")
    try:
        amount = float(data["amount"]) if data.get("amount") is not None else None
        frequency = int(data["frequency"]) if data.get("frequency") is not None else None
    except (TypeError, ValueError) as e:
        raise InvalidInputError("transaction amount/frequency must be numeric") from e
    addresses = data.get("addresses")
    if addresses is not None:
        if not isinstance(addresses, list):
            raise InvalidInputError("transaction addresses must be a list")
        addresses = tuple(str(a) for a in addresses)
    return TransactionPayload(amount=amount, frequency=frequency, addresses=addresses)


def _parse_media(data: Any) -> MediaPayload:
    if data is None:
        return MediaPayload()
    if isinstance(data, bytes):
        return MediaPayload(content=data)
    if isinstance(data, str):
        return MediaPayload(filename=_opt_str(data))
    if isinstance(data, Mapping):
        return MediaPayload(
            filename=_opt_str(data.get("filename", data.get("name"))),
            content=_content_bytes(data),
            mime_type=_opt_str(data.get("mime_type", data.get("mimeType"))),
        )
    raise InvalidInputError("media data must be a filename, bytes or an object")


_PAYLOAD_PARSERS = {
    InputKind.FILE: _parse_file,
    InputKind.TEXT: _parse_text,
    InputKind.NETWORK: _parse_network,
    InputKind.TRANSACTION: _parse_transaction,
    InputKind.MEDIA: _parse_media,
    InputKind.GENERIC: lambda data: GenericPayload(data=data),
}


ERROR_CATEGORY = "error"
ERROR_CONFIDENCE = 0.1


def error_result(cause: BaseException | str) -> AnalysisResult:
    """The well-formed '=' result returned in place of a failed analysis."""
    return AnalysisResult(
        flag=Flag.SUSPICIOUS,
        confidence=ERROR_CONFIDENCE,
        reasoning=f"Analysis failed: {cause}",
        category=ERROR_CATEGORY,
    )
