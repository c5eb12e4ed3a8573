"""
Pytest fixtures for DAFF tests: default rule/reputation tables, a scripted
judgment service and an analyzer wired to in-memory escalation and broadcast
queues. No network access.
"""

from __future__ import annotations

import time
from typing import Any

import pytest

from backend_daff.alerts.broadcast import QueueBroadcaster
from backend_daff.alerts.escalation import QueueEscalationNotifier
from backend_daff.analysis_engine.classifier import AutomatedAnalyzer
from backend_daff.analysis_engine.extractors import ExtractionContext
from backend_daff.analysis_engine.judgment import JudgmentRequest
from backend_daff.analysis_engine.reputation import default_reputation
from backend_daff.analysis_engine.rules import default_rule_config


class FakeJudgmentService:
    """Returns a canned judgment (or raises / stalls) and records every request."""

    def __init__(
        self,
        response: dict[str, Any] | None = None,
        error: Exception | None = None,
        delay_sec: float = 0.0,
    ) -> None:
        self.response = response if response is not None else {"threat_level": "none", "confidence": 0.9}
        self.error = error
        self.delay_sec = delay_sec
        self.requests: list[JudgmentRequest] = []

    def judge(self, request: JudgmentRequest) -> dict[str, Any]:
        self.requests.append(request)
        if self.delay_sec:
            time.sleep(self.delay_sec)
        if self.error is not None:
            raise self.error
        return dict(self.response)


@pytest.fixture
def rules():
    return default_rule_config()


@pytest.fixture
def reputation():
    return default_reputation()


@pytest.fixture
def fake_judgment():
    return FakeJudgmentService()


@pytest.fixture
def context(rules, reputation, fake_judgment):
    return ExtractionContext(
        rules=rules,
        reputation=reputation,
        judgment=fake_judgment,
        judgment_timeout_sec=2.0,
        max_text_chars=2000,
    )


@pytest.fixture
def escalation_notifier():
    return QueueEscalationNotifier(maxsize=10)


@pytest.fixture
def broadcaster():
    return QueueBroadcaster(maxsize=100)


@pytest.fixture
def analyzer(context, escalation_notifier, broadcaster):
    """Analyzer with fast monitor ticks and in-memory escalation/broadcast queues."""
    return AutomatedAnalyzer(
        context,
        escalation=escalation_notifier,
        broadcaster=broadcaster,
        batch_concurrency=4,
        monitor_interval_sec=0.05,
    )


@pytest.fixture
def make_judgment():
    """Factory for extra scripted judgment services (errors, delays, other answers)."""
    return FakeJudgmentService
