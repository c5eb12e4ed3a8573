"""
Automated analyzer — the classification API.

classify(input) runs one extractor, converts any failure into the error
result, stamps timing, escalates high-confidence '=' findings and broadcasts
the outcome. classify() never raises: callers always get a well-formed
AnalysisResult. classify_batch() and the real-time monitor are built on it.

Rules, reputation data and the judgment service are injected once (see
build_analyzer) and only read afterwards, so one analyzer is safe to share
across threads.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from backend_daff.agent_worker.batch import BatchResult, run_batch
from backend_daff.agent_worker.monitor import (
    InputSource,
    MonitorHandle,
    MonitorState,
    SimulatedNetworkSource,
)
from backend_daff.alerts.broadcast import (
    EVENT_ANALYSIS_COMPLETE,
    EVENT_BATCH_COMPLETE,
    Broadcaster,
    NullBroadcaster,
)
from backend_daff.alerts.escalation import (
    EscalationNotifier,
    QueueEscalationNotifier,
    should_escalate,
)
from backend_daff.analysis_engine.extractors import (
    CATEGORY_FILE,
    CATEGORY_GENERIC,
    CATEGORY_MEDIA,
    CATEGORY_NETWORK,
    CATEGORY_TEXT,
    CATEGORY_TRANSACTION,
    ExtractionContext,
    run_extraction,
)
from backend_daff.analysis_engine.judgment import (
    JUDGMENT_MAX_WORKERS,
    JudgmentService,
    OpenAIJudgmentService,
)
from backend_daff.analysis_engine.models import AnalysisInput, AnalysisResult, error_result
from backend_daff.analysis_engine.reputation import default_reputation, load_reputation
from backend_daff.analysis_engine.rules import default_rule_config, load_rule_config
from backend_daff.config.settings import (
    DEFAULT_BATCH_CONCURRENCY,
    DEFAULT_MONITOR_INTERVAL_SEC,
    Settings,
    get_settings,
)
from backend_daff.daff_logging import bind_analysis, get_logger

logger = get_logger(__name__)

SYSTEM_NAME = "Automated Digital Forensics Analysis"
CAPABILITIES = (
    CATEGORY_FILE,
    CATEGORY_TEXT,
    CATEGORY_NETWORK,
    CATEGORY_TRANSACTION,
    CATEGORY_MEDIA,
    CATEGORY_GENERIC,
)


class AutomatedAnalyzer:
    def __init__(
        self,
        context: ExtractionContext,
        *,
        escalation: EscalationNotifier | None = None,
        broadcaster: Broadcaster | None = None,
        batch_concurrency: int = DEFAULT_BATCH_CONCURRENCY,
        monitor_interval_sec: float = DEFAULT_MONITOR_INTERVAL_SEC,
    ) -> None:
        self.context = context
        self.escalation = escalation
        self.broadcaster = broadcaster or NullBroadcaster()
        self.batch_concurrency = max(1, int(batch_concurrency))
        self.monitor_interval_sec = monitor_interval_sec
        self._monitors: set[MonitorHandle] = set()
        self._monitors_lock = threading.Lock()

    def classify(self, inp: AnalysisInput) -> AnalysisResult:
        """Classify one input. Never raises."""
        log = bind_analysis(inp.kind.value, inp.metadata.source if inp.metadata else None)
        start = time.perf_counter()
        try:
            result = run_extraction(inp, self.context)
        except Exception as e:
            log.warning("analysis_failed", error=str(e), exc_info=True)
            result = error_result(e)
        result = replace(
            result,
            timestamp=datetime.now(timezone.utc),
            processing_time_ms=(time.perf_counter() - start) * 1000.0,
        )
        log.info(
            "analysis_completed",
            category=result.category,
            flag=result.flag.value,
            confidence=round(result.confidence, 4),
            processing_time_ms=round(result.processing_time_ms, 2),
        )

        if should_escalate(result, self.context.rules.thresholds):
            self._escalate(result, inp)
        self._broadcast(
            EVENT_ANALYSIS_COMPLETE,
            {"inputKind": inp.kind.value, "result": result.to_dict()},
        )
        return result

    def classify_batch(self, inputs: Sequence[AnalysisInput]) -> BatchResult:
        """Classify inputs concurrently; results[i] belongs to inputs[i]."""
        batch = run_batch(self.classify, list(inputs), self.batch_concurrency)
        self._broadcast(EVENT_BATCH_COMPLETE, batch.to_dict())
        return batch

    def start_monitor(
        self,
        on_result: Callable[[AnalysisResult], None],
        source: InputSource | None = None,
        interval_sec: float | None = None,
    ) -> MonitorHandle:
        """
        Start a real-time monitor feeding on_result one result per tick.

        Without a source the monitor classifies simulated network traffic.
        """
        handle = MonitorHandle(
            self.classify,
            on_result,
            source or SimulatedNetworkSource(),
            interval_sec if interval_sec is not None else self.monitor_interval_sec,
        )
        with self._monitors_lock:
            self._prune_stopped()
            self._monitors.add(handle)
        handle.start()
        return handle

    def stop_monitor(self, handle: MonitorHandle) -> None:
        handle.stop()
        with self._monitors_lock:
            self._monitors.discard(handle)

    def status(self) -> dict[str, Any]:
        with self._monitors_lock:
            self._prune_stopped()
            active = sum(1 for h in self._monitors if h.is_running)
        return {
            "system": SYSTEM_NAME,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "monitoring": "active" if active else "inactive",
            "active_monitors": active,
            "capabilities": list(CAPABILITIES),
        }

    def _prune_stopped(self) -> None:
        # handles stopped directly, bypassing stop_monitor
        self._monitors = {h for h in self._monitors if h.state is not MonitorState.STOPPED}

    def _escalate(self, result: AnalysisResult, inp: AnalysisInput) -> None:
        if self.escalation is None:
            return
        try:
            self.escalation.notify(result, inp)
        except Exception as e:
            logger.warning("escalation_failed", category=result.category, error=str(e), exc_info=True)

    def _broadcast(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            self.broadcaster.notify(event_type, payload)
        except Exception as e:
            logger.warning("broadcast_failed", event=event_type, error=str(e))


def build_analyzer(
    settings: Settings | None = None,
    *,
    judgment: JudgmentService | None = None,
    escalation: EscalationNotifier | None = None,
    broadcaster: Broadcaster | None = None,
) -> AutomatedAnalyzer:
    """
    Wire an analyzer from settings: rule and reputation files (built-in
    defaults when unset), the OpenAI judgment adapter on its own bounded pool
    and a queue escalation notifier. Raises ConfigurationError when a configured file is invalid.
    """
    settings = settings or get_settings()
    rules = load_rule_config(settings.rules_path) if settings.rules_path else default_rule_config()
    reputation = (
        load_reputation(settings.reputation_path) if settings.reputation_path else default_reputation()
    )
    if judgment is None:
        judgment = OpenAIJudgmentService(
            settings.ai_judgment_url,
            settings.ai_api_key,
            model=settings.ai_model,
            timeout_sec=settings.ai_timeout_sec,
        )
    if escalation is None:
        escalation = QueueEscalationNotifier(settings.escalation_queue_size)
    context = ExtractionContext(
        rules=rules,
        reputation=reputation,
        judgment=judgment,
        judgment_timeout_sec=settings.ai_timeout_sec,
        max_text_chars=settings.max_text_chars,
        judgment_executor=ThreadPoolExecutor(
            max_workers=max(JUDGMENT_MAX_WORKERS, settings.batch_concurrency + 1),
            thread_name_prefix="daff-judgment",
        ),
    )
    logger.info(
        "analyzer_built",
        rules_path=str(settings.rules_path) if settings.rules_path else None,
        reputation_path=str(settings.reputation_path) if settings.reputation_path else None,
        judgment_configured=bool(settings.ai_api_key),
    )
    return AutomatedAnalyzer(
        context,
        escalation=escalation,
        broadcaster=broadcaster,
        batch_concurrency=settings.batch_concurrency,
        monitor_interval_sec=settings.monitor_interval_sec,
    )
