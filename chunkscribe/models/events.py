"""Recording event models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Any, Dict


class EventType(Enum):
    """Fixed vocabulary of lifecycle and ingestion events."""
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    CHUNK_UPLOAD = "chunk_upload"
    TRANSCRIPTION_SUCCESS = "transcription_success"
    TRANSCRIPTION_FAIL = "transcription_fail"
    STOP = "stop"
    PROCESS = "process"
    COMPLETE = "complete"


@dataclass(frozen=True)
class RecordingEvent:
    """Append-only record of something that happened to a session."""
    session_id: str
    event_type: EventType
    timestamp: datetime
    actor: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    event_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.event_id,
            "sessionId": self.session_id,
            "type": self.event_type.value,
            "actor": self.actor,
            "metadata": self.metadata,
            "createdAt": self.timestamp.isoformat(),
        }
