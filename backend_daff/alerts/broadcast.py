"""
Result broadcast — the notify contract of the (external) real-time transport.

The analyzer announces every finished analysis ("auto_analysis_complete") and
batch ("batch_analysis_complete") through a Broadcaster. The transport that
pushes these to dashboards lives outside this package; QueueBroadcaster is the
hand-off point it consumes. Broadcasting is fire-and-forget.
"""

from __future__ import annotations

import queue
from typing import Any, Protocol

from backend_daff.daff_logging import get_logger

logger = get_logger(__name__)

EVENT_ANALYSIS_COMPLETE = "auto_analysis_complete"
EVENT_BATCH_COMPLETE = "batch_analysis_complete"


class Broadcaster(Protocol):
    def notify(self, event_type: str, payload: dict[str, Any]) -> None:
        ...


class NullBroadcaster:
    def notify(self, event_type: str, payload: dict[str, Any]) -> None:
        return None


class QueueBroadcaster:
    """Bounded queue of {"type", "data"} messages; drops (with a warning) when full."""

    def __init__(self, maxsize: int = 1000) -> None:
        self.queue: queue.Queue[dict[str, Any]] = queue.Queue(maxsize=maxsize)

    def notify(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            self.queue.put_nowait({"type": event_type, "data": payload})
        except queue.Full:
            logger.warning("broadcast_dropped", event=event_type, reason="queue_full")
