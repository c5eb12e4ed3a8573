"""
Agent worker package — batch processing and continuous monitoring.

Runs the single-item pipeline over batches on a thread pool and drives the
cancellable real-time monitor. The long-running process entrypoint is
backend_daff.agent_worker.runtime.
"""

from backend_daff.agent_worker.batch import BatchResult, BatchSummary, run_batch
from backend_daff.agent_worker.monitor import (
    InputSource,
    MonitorHandle,
    MonitorState,
    QueueInputSource,
    SimulatedNetworkSource,
)

__all__ = [
    "BatchResult",
    "BatchSummary",
    "run_batch",
    "InputSource",
    "MonitorHandle",
    "MonitorState",
    "QueueInputSource",
    "SimulatedNetworkSource",
]
