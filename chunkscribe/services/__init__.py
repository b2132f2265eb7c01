"""Services layer for ChunkScribe application logic."""

from .event_log import EventLog, EVENTS_TOPIC
from .lifecycle import SessionLifecycle, TRANSITIONS, UPLOAD_STATES, allowed_actions
from .usage import UsageLedger, UsagePricing
from .session_service import SessionService, ExportResult

__all__ = [
    "EventLog",
    "EVENTS_TOPIC",
    "SessionLifecycle",
    "TRANSITIONS",
    "UPLOAD_STATES",
    "allowed_actions",
    "UsageLedger",
    "UsagePricing",
    "SessionService",
    "ExportResult",
]
