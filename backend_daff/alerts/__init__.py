"""
Alerts — escalation of high-confidence ambiguous findings and the result
broadcast notify contract. Both are fire-and-forget hand-offs; neither can
alter or fail an analysis result.
"""

from backend_daff.alerts.broadcast import (
    Broadcaster,
    NullBroadcaster,
    QueueBroadcaster,
)
from backend_daff.alerts.escalation import (
    EscalationDispatcher,
    EscalationEvent,
    EscalationNotifier,
    QueueEscalationNotifier,
    log_escalation_sink,
    should_escalate,
)

__all__ = [
    "Broadcaster",
    "NullBroadcaster",
    "QueueBroadcaster",
    "EscalationDispatcher",
    "EscalationEvent",
    "EscalationNotifier",
    "QueueEscalationNotifier",
    "log_escalation_sink",
    "should_escalate",
]
