"""
Tests for the runtime worker loop: monitor + escalation dispatcher started,
results flow while running, clean shutdown when the stop event is set.
"""

from __future__ import annotations

import threading
import time
from unittest.mock import patch

from backend_daff.agent_worker import runtime
from backend_daff.agent_worker.monitor import QueueInputSource
from backend_daff.analysis_engine.models import AnalysisInput, InputKind, TransactionPayload
from backend_daff.config.settings import Settings
from backend_daff.core.exceptions import ConfigurationError

BLACKLISTED = "1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2"


def _start(stop, source, sinks=()):
    worker = threading.Thread(
        target=runtime.run_loop,
        args=(Settings(monitor_interval_sec=0.01), stop, source),
        kwargs={"sinks": sinks, "heartbeat_sec": 0.02},
        daemon=True,
    )
    worker.start()
    return worker


def test_run_loop_processes_and_escalates():
    """An ambiguous high-confidence input flows through the monitor to the escalation sink."""
    stop = threading.Event()
    escalated = threading.Event()
    events = []

    def sink(event):
        events.append(event)
        escalated.set()

    source = QueueInputSource()
    source.put(
        AnalysisInput(
            InputKind.TRANSACTION,
            TransactionPayload(amount=6000, frequency=1, addresses=(BLACKLISTED,)),
        )
    )
    worker = _start(stop, source, sinks=[sink])
    try:
        assert escalated.wait(2.0)
    finally:
        stop.set()
        worker.join(10.0)
    assert not worker.is_alive()
    assert events[0].result.category == "transaction_analysis"


def test_run_loop_stops_promptly():
    stop = threading.Event()
    worker = _start(stop, QueueInputSource())
    time.sleep(0.1)
    stop.set()
    worker.join(10.0)
    assert not worker.is_alive()


def test_main_returns_1_on_configuration_error():
    with patch.object(runtime, "get_settings", side_effect=ConfigurationError("bad rules")):
        assert runtime.main() == 1


def test_main_returns_0_on_keyboard_interrupt():
    with patch.object(runtime, "get_settings", return_value=Settings()), patch.object(
        runtime, "run_loop", side_effect=KeyboardInterrupt
    ):
        assert runtime.main() == 0
