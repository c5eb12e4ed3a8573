"""
Real-time monitor: a cancellable periodic task that classifies one input per tick.

Idle -> Running -> Stopped (terminal). Each handle owns one daemon thread;
ticks are serialized on that thread, so callback order equals tick order.
A tick that outlasts the interval delays the next one and the missed ticks
are coalesced, never queued.

Stopping prevents further ticks. A classification already in flight runs to
completion, but its result is discarded when the handle was stopped before
delivery, so on_result runs at most once after stop() (only when stop races
the delivery check). Restarting requires a new handle.

Inputs come from a pluggable InputSource; SimulatedNetworkSource produces
random network summaries for demos, QueueInputSource feeds real inputs.
"""

from __future__ import annotations

import queue
import random
import threading
import time
from enum import Enum
from typing import Callable, Protocol

from backend_daff.analysis_engine.models import (
    AnalysisInput,
    AnalysisResult,
    Connection,
    InputKind,
    InputMetadata,
    NetworkPayload,
    TrafficSummary,
)
from backend_daff.core.exceptions import MonitorStateError
from backend_daff.daff_logging import get_logger

logger = get_logger(__name__)

DEFAULT_INTERVAL_SEC = 5.0
MIN_INTERVAL_SEC = 0.01


class MonitorState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class InputSource(Protocol):
    def next_input(self) -> AnalysisInput | None:
        """Return the input for this tick, or None to skip the tick."""
        ...


class SimulatedNetworkSource:
    """
    Random network-flow summaries: up to 9 connections on 192.168.1.0/24 with
    random ports, and a traffic volume below 2 MB. Pass a seeded Random for
    reproducible sequences.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def next_input(self) -> AnalysisInput:
        rng = self._rng
        connections = tuple(
            Connection(ip=f"192.168.1.{rng.randrange(255)}", port=rng.randrange(65535))
            for _ in range(rng.randrange(10))
        )
        return AnalysisInput(
            kind=InputKind.NETWORK,
            payload=NetworkPayload(
                connections=connections,
                traffic=TrafficSummary(volume=rng.randrange(2_000_000)),
            ),
            metadata=InputMetadata(source="simulated_network"),
        )


class QueueInputSource:
    """Hands out inputs pushed by a producer; an empty queue skips the tick."""

    def __init__(self, maxsize: int = 0) -> None:
        self.queue: queue.Queue[AnalysisInput] = queue.Queue(maxsize=maxsize)

    def put(self, inp: AnalysisInput) -> None:
        self.queue.put(inp)

    def next_input(self) -> AnalysisInput | None:
        try:
            return self.queue.get_nowait()
        except queue.Empty:
            return None


class MonitorHandle:
    """One monitor instance. Create, start() once, stop() any number of times."""

    def __init__(
        self,
        classify_fn: Callable[[AnalysisInput], AnalysisResult],
        on_result: Callable[[AnalysisResult], None],
        source: InputSource,
        interval_sec: float = DEFAULT_INTERVAL_SEC,
        name: str = "daff-monitor",
    ) -> None:
        self._classify = classify_fn
        self._on_result = on_result
        self._source = source
        self.interval_sec = max(MIN_INTERVAL_SEC, float(interval_sec))
        self.name = name
        self._state = MonitorState.IDLE
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.tick_count = 0
        self.delivered_count = 0
        self.discarded_count = 0

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is MonitorState.RUNNING

    def start(self) -> None:
        with self._lock:
            if self._state is not MonitorState.IDLE:
                raise MonitorStateError(f"cannot start monitor in state {self._state.value}")
            self._state = MonitorState.RUNNING
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()
        logger.info("monitor_started", monitor=self.name, interval_sec=self.interval_sec)

    def stop(self) -> None:
        """Cancel future ticks. Idempotent; does not wait for an in-flight tick."""
        with self._lock:
            if self._state is MonitorState.STOPPED:
                return
            self._state = MonitorState.STOPPED
            self._stop_event.set()
        logger.info(
            "monitor_stopped",
            monitor=self.name,
            ticks=self.tick_count,
            delivered=self.delivered_count,
            discarded=self.discarded_count,
        )

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the monitor thread to exit. Returns True when it has."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run(self) -> None:
        next_tick = time.monotonic() + self.interval_sec
        while not self._stop_event.wait(max(0.0, next_tick - time.monotonic())):
            self._tick()
            next_tick += self.interval_sec
            now = time.monotonic()
            if next_tick <= now:
                missed = int((now - next_tick) // self.interval_sec) + 1
                next_tick += missed * self.interval_sec
                logger.debug("monitor_ticks_coalesced", monitor=self.name, missed=missed)

    def _tick(self) -> None:
        self.tick_count += 1
        try:
            inp = self._source.next_input()
        except Exception as e:
            logger.warning("monitor_source_failed", monitor=self.name, tick=self.tick_count, error=str(e))
            return
        if inp is None:
            logger.debug("monitor_tick_idle", monitor=self.name, tick=self.tick_count)
            return

        try:
            result = self._classify(inp)
        except Exception as e:
            logger.exception("monitor_tick_failed", monitor=self.name, tick=self.tick_count, error=str(e))
            return

        if self._stop_event.is_set():
            self.discarded_count += 1
            logger.info(
                "monitor_result_discarded",
                monitor=self.name,
                tick=self.tick_count,
                flag=result.flag.value,
            )
            return
        try:
            self._on_result(result)
            self.delivered_count += 1
        except Exception as e:
            logger.warning(
                "monitor_callback_failed",
                monitor=self.name,
                tick=self.tick_count,
                error=str(e),
                exc_info=True,
            )
