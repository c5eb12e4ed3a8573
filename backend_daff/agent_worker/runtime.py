"""
Persistent autonomous worker for continuous evidence monitoring.

Runs as a separate process (CLI entrypoint). Starts the real-time monitor on
the configured input source, drains escalations to the review sinks, and logs
a heartbeat with engine status until shutdown. Safe shutdown on
KeyboardInterrupt/SIGTERM: the monitor is stopped first, then the escalation
queue is drained.

Usage: python -m backend_daff.agent_worker.runtime
"""

from __future__ import annotations

import signal
import sys
import threading
from typing import Any, Iterable

from backend_daff.agent_worker.monitor import InputSource
from backend_daff.alerts.escalation import (
    EscalationDispatcher,
    EscalationSink,
    QueueEscalationNotifier,
    log_escalation_sink,
)
from backend_daff.analysis_engine.classifier import build_analyzer
from backend_daff.analysis_engine.models import AnalysisResult
from backend_daff.config import Settings, get_settings
from backend_daff.daff_logging import get_logger

logger = get_logger(__name__)

HEARTBEAT_SEC = 60.0
SHUTDOWN_JOIN_SEC = 5.0


def _log_result(result: AnalysisResult) -> None:
    logger.info(
        "monitor_result",
        flag=result.flag.value,
        confidence=round(result.confidence, 4),
        category=result.category,
        reasoning=result.reasoning,
    )


def run_loop(
    settings: Settings,
    stop_event: threading.Event | None = None,
    source: InputSource | None = None,
    sinks: Iterable[EscalationSink] = (log_escalation_sink,),
    heartbeat_sec: float = HEARTBEAT_SEC,
) -> None:
    """
    Run the monitor until stop_event is set (or SIGTERM arrives).

    Raises ConfigurationError before anything starts when the rule or
    reputation files are invalid.
    """
    stop_event = stop_event or threading.Event()
    notifier = QueueEscalationNotifier(settings.escalation_queue_size)
    analyzer = build_analyzer(settings, escalation=notifier)
    dispatcher = EscalationDispatcher(notifier, sinks)

    def request_shutdown(*args: Any, **kwargs: Any) -> None:
        stop_event.set()

    try:
        signal.signal(signal.SIGTERM, request_shutdown)
    except (AttributeError, ValueError):
        # Windows, or not on the main thread
        pass

    dispatcher.start()
    handle = analyzer.start_monitor(_log_result, source=source)
    logger.info(
        "runtime_worker_started",
        monitor_interval_sec=handle.interval_sec,
        escalation_queue_size=settings.escalation_queue_size,
    )
    try:
        while not stop_event.wait(heartbeat_sec):
            status = analyzer.status()
            logger.info(
                "runtime_heartbeat",
                monitoring=status["monitoring"],
                ticks=handle.tick_count,
                delivered=handle.delivered_count,
                escalations_dispatched=dispatcher.dispatched_count,
            )
    finally:
        analyzer.stop_monitor(handle)
        handle.join(SHUTDOWN_JOIN_SEC)
        dispatcher.stop(SHUTDOWN_JOIN_SEC)
        logger.info("runtime_worker_stopped", ticks=handle.tick_count)


def main() -> int:
    """CLI entrypoint: load settings from env and run the monitor loop."""
    try:
        run_loop(get_settings())
        return 0
    except KeyboardInterrupt:
        logger.info("runtime_shutdown_signal")
        return 0
    except Exception as e:
        logger.exception("runtime_fatal", error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
