"""
Escalation of high-confidence ambiguous findings.

A result escalates when it is flagged '=' with confidence above the high
threshold. Escalation is a message-passing boundary: the analyzer puts an
EscalationEvent on a bounded queue and returns immediately; whatever consumes
the queue (the notification layer, or EscalationDispatcher when running
stand-alone) does the actual notifying. A full queue drops the event with a
warning; it never affects the already-produced result.

Exactly one escalation attempt per qualifying result; no retries, no
cross-input dedup.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Protocol

from backend_daff.analysis_engine.models import AnalysisInput, AnalysisResult, Flag
from backend_daff.analysis_engine.rules import ConfidenceThresholds
from backend_daff.daff_logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 1000
DISPATCH_POLL_SEC = 0.5


def should_escalate(result: AnalysisResult, thresholds: ConfidenceThresholds) -> bool:
    return result.flag is Flag.SUSPICIOUS and result.confidence > thresholds.high


@dataclass(frozen=True)
class EscalationEvent:
    result: AnalysisResult
    input: AnalysisInput
    queued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "type": "escalation",
            "queuedAt": self.queued_at.isoformat(),
            "inputKind": self.input.kind.value,
            "source": self.input.metadata.source if self.input.metadata else None,
            "result": self.result.to_dict(),
        }


class EscalationNotifier(Protocol):
    def notify(self, result: AnalysisResult, inp: AnalysisInput) -> None:
        """Hand off one escalation. Must not block."""
        ...


class QueueEscalationNotifier:
    """Non-blocking notifier backed by a bounded queue."""

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE) -> None:
        self.queue: queue.Queue[EscalationEvent] = queue.Queue(maxsize=maxsize)

    def notify(self, result: AnalysisResult, inp: AnalysisInput) -> None:
        event = EscalationEvent(result=result, input=inp)
        try:
            self.queue.put_nowait(event)
        except queue.Full:
            logger.warning(
                "escalation_dropped",
                reason="queue_full",
                category=result.category,
                confidence=round(result.confidence, 4),
            )
            return
        logger.info(
            "escalation_queued",
            category=result.category,
            confidence=round(result.confidence, 4),
            queue_size=self.queue.qsize(),
        )


EscalationSink = Callable[[EscalationEvent], None]


def log_escalation_sink(event: EscalationEvent) -> None:
    """Default sink: record the finding for manual review."""
    logger.warning(
        "escalation_for_review",
        category=event.result.category,
        confidence=round(event.result.confidence, 4),
        reasoning=event.result.reasoning,
        input_kind=event.input.kind.value,
    )


class EscalationDispatcher:
    """
    Background consumer that drains a QueueEscalationNotifier and hands each
    event to every sink. A failing sink is logged and the next sink still runs.
    """

    def __init__(
        self,
        notifier: QueueEscalationNotifier,
        sinks: Iterable[EscalationSink] = (log_escalation_sink,),
    ) -> None:
        self._queue = notifier.queue
        self._sinks = list(sinks)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.dispatched_count = 0
        self.failed_count = 0

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="daff-escalation", daemon=True)
        self._thread.start()
        logger.info("escalation_dispatcher_started", sinks=len(self._sinks))

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        logger.info(
            "escalation_dispatcher_stopped",
            dispatched=self.dispatched_count,
            failed=self.failed_count,
        )

    def dispatch(self, event: EscalationEvent) -> None:
        for sink in self._sinks:
            try:
                sink(event)
            except Exception as e:
                self.failed_count += 1
                logger.warning(
                    "escalation_sink_failed",
                    sink=getattr(sink, "__name__", repr(sink)),
                    error=str(e),
                    exc_info=True,
                )
        self.dispatched_count += 1

    def _run(self) -> None:
        # Keep draining until stopped and the queue is empty
        while not (self._stop_event.is_set() and self._queue.empty()):
            try:
                event = self._queue.get(timeout=DISPATCH_POLL_SEC)
            except queue.Empty:
                continue
            try:
                self.dispatch(event)
            finally:
                self._queue.task_done()
