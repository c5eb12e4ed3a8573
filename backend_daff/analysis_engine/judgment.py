"""
AI judgment service — the contract the text and media extractors consume.

A service receives a JudgmentRequest (task kind, content, metadata) and returns
a JSON object; the object is validated into TextJudgment / MediaJudgment with
pydantic. Every call goes through request_judgment(), which runs it on a
bounded thread pool with a deadline so a stalled service can never hang an
analysis. All failures surface as JudgmentServiceError (JudgmentTimeoutError
for the timeout) and are handled inside the extractor layer.

OpenAIJudgmentService is the production adapter: an OpenAI-compatible
chat-completions endpoint called over httpx with JSON response format.
"""

from __future__ import annotations

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Protocol

import httpx
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from backend_daff.analysis_engine.models import clamp_confidence
from backend_daff.core.exceptions import JudgmentServiceError, JudgmentTimeoutError
from backend_daff.daff_logging import get_logger

logger = get_logger(__name__)

JUDGMENT_MAX_WORKERS = 8

_shared_executor: ThreadPoolExecutor | None = None
_shared_executor_lock = threading.Lock()

TEXT_SYSTEM_PROMPT = (
    "You are a digital forensics AI analyzing text for security threats. "
    "Respond with JSON in this format: "
    '{"threat_level": "high|medium|low|none", "indicators": ["..."], '
    '"confidence": 0.95, "reasoning": "detailed explanation", '
    '"categories": ["phishing", "social_engineering"]}'
)
MEDIA_SYSTEM_PROMPT = (
    "You are a digital forensics AI analyzing media for manipulation. "
    "Respond with JSON in this format: "
    '{"manipulation_detected": true, "confidence": 0.95, "indicators": ["..."], '
    '"reasoning": "detailed explanation", '
    '"manipulation_type": "deepfake|editing|synthetic|none"}'
)


class TaskKind(str, Enum):
    TEXT = "text"
    MEDIA = "media"


class ThreatLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class JudgmentRequest:
    task_kind: TaskKind
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    image_data_url: str | None = None
    """Optional data: URL for image media sent alongside the metadata."""


class JudgmentService(Protocol):
    def judge(self, request: JudgmentRequest) -> Mapping[str, Any]:
        """Return the raw JSON judgment; raise on transport or service failure."""
        ...


def _clamped_confidence(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValueError("confidence must be a number")
    try:
        return clamp_confidence(float(value))
    except (TypeError, ValueError) as e:
        raise ValueError(f"confidence must be a number, got {value!r}") from e


class TextJudgment(BaseModel):
    threat_level: ThreatLevel = Field(
        validation_alias=AliasChoices("threat_level", "threatLevel")
    )
    indicators: list[str] = Field(default_factory=list)
    confidence: float = 0.0
    reasoning: str = ""
    categories: list[str] = Field(default_factory=list)

    @field_validator("threat_level", mode="before")
    @classmethod
    def _normalize_level(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return _clamped_confidence(v)

    @field_validator("indicators", "categories", mode="before")
    @classmethod
    def _none_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("reasoning", mode="before")
    @classmethod
    def _none_text(cls, v: Any) -> Any:
        return "" if v is None else v


class MediaJudgment(BaseModel):
    manipulation_detected: bool = Field(
        validation_alias=AliasChoices("manipulation_detected", "manipulationDetected", "isDeepfake")
    )
    confidence: float = 0.0
    indicators: list[str] = Field(default_factory=list)
    reasoning: str = ""
    manipulation_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("manipulation_type", "manipulationType"),
    )

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return _clamped_confidence(v)

    @field_validator("indicators", mode="before")
    @classmethod
    def _none_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("reasoning", mode="before")
    @classmethod
    def _none_text(cls, v: Any) -> Any:
        return "" if v is None else v


def parse_text_judgment(raw: Mapping[str, Any]) -> TextJudgment:
    try:
        return TextJudgment.model_validate(dict(raw))
    except ValidationError as e:
        raise JudgmentServiceError(f"invalid text judgment: {e.error_count()} validation error(s)") from e


def parse_media_judgment(raw: Mapping[str, Any]) -> MediaJudgment:
    try:
        return MediaJudgment.model_validate(dict(raw))
    except ValidationError as e:
        raise JudgmentServiceError(f"invalid media judgment: {e.error_count()} validation error(s)") from e


def shared_judgment_executor() -> ThreadPoolExecutor:
    """Process-wide pool used when a caller does not bring its own."""
    global _shared_executor
    with _shared_executor_lock:
        if _shared_executor is None:
            _shared_executor = ThreadPoolExecutor(
                max_workers=JUDGMENT_MAX_WORKERS, thread_name_prefix="daff-judgment"
            )
        return _shared_executor


def request_judgment(
    service: JudgmentService,
    request: JudgmentRequest,
    timeout_sec: float,
    executor: ThreadPoolExecutor | None = None,
) -> dict[str, Any]:
    """
    Call service.judge(request) with a hard deadline.

    The call runs on a bounded thread pool (the shared one unless executor is
    given). If it has not finished after timeout_sec the caller gets
    JudgmentTimeoutError; a call still queued is cancelled, a running one keeps
    its worker until the service returns. Any service exception is re-raised
    as JudgmentServiceError.
    """
    pool = executor or shared_judgment_executor()
    try:
        future = pool.submit(service.judge, request)
    except RuntimeError as e:
        raise JudgmentServiceError(f"judgment executor unavailable: {e}") from e

    try:
        value = future.result(timeout=timeout_sec)
    except FutureTimeoutError:
        future.cancel()
        logger.warning("judgment_timeout", task_kind=request.task_kind.value, timeout_sec=timeout_sec)
        raise JudgmentTimeoutError(timeout_sec) from None
    except JudgmentServiceError:
        raise
    except Exception as e:
        raise JudgmentServiceError(str(e) or type(e).__name__) from e

    if not isinstance(value, Mapping):
        raise JudgmentServiceError("judgment service must return a JSON object")
    return dict(value)


class OpenAIJudgmentService:
    """
    Judgment service backed by an OpenAI-compatible chat-completions endpoint.

    Without an API key every call fails fast with JudgmentServiceError, which
    the extractors turn into degraded results.
    """

    def __init__(
        self,
        url: str,
        api_key: str | None,
        *,
        model: str = "gpt-4o",
        timeout_sec: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._model = model
        self._timeout_sec = timeout_sec
        self._client = client

    def _messages(self, request: JudgmentRequest) -> list[dict[str, Any]]:
        if request.task_kind is TaskKind.TEXT:
            return [
                {"role": "system", "content": TEXT_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": (
                        "Analyze this text for security threats, manipulation attempts, "
                        f"or suspicious content:\n\n{request.content}"
                    ),
                },
            ]
        prompt = (
            "Analyze this media file for signs of manipulation, deepfakes, or synthetic "
            f"content. {request.content} Metadata: {json.dumps(request.metadata, default=str)}"
        )
        user_content: Any = prompt
        if request.image_data_url:
            user_content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": request.image_data_url}},
            ]
        return [
            {"role": "system", "content": MEDIA_SYSTEM_PROMPT},
            {"role": "user", "content": user_content},
        ]

    def _post(self, client: httpx.Client, body: dict[str, Any]) -> dict[str, Any]:
        resp = client.post(
            self._url,
            json=body,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        resp.raise_for_status()
        return resp.json()

    def judge(self, request: JudgmentRequest) -> dict[str, Any]:
        if not self._api_key:
            raise JudgmentServiceError("AI judgment service API key not configured")
        body = {
            "model": self._model,
            "messages": self._messages(request),
            "response_format": {"type": "json_object"},
        }
        try:
            if self._client is not None:
                data = self._post(self._client, body)
            else:
                with httpx.Client(timeout=self._timeout_sec) as client:
                    data = self._post(client, body)
        except httpx.HTTPError as e:
            logger.warning("judgment_request_failed", task_kind=request.task_kind.value, error=str(e))
            raise JudgmentServiceError(f"judgment request failed: {e}") from e
        except ValueError as e:
            raise JudgmentServiceError("judgment service returned non-JSON body") from e

        try:
            content = data["choices"][0]["message"]["content"]
            judgment = json.loads(content)
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as e:
            raise JudgmentServiceError("judgment service returned an unexpected response shape") from e
        if not isinstance(judgment, dict):
            raise JudgmentServiceError("judgment content must be a JSON object")
        return judgment
