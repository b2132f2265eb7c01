"""Recording session model."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any


class SessionStatus(Enum):
    """Lifecycle state of a recording session."""
    CREATED = "created"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"
    PROCESSING = "processing"
    COMPLETED = "completed"


@dataclass
class RecordingSession:
    """A long-running recording made of independently uploaded chunks."""
    session_id: str
    owner: str
    title: str
    status: SessionStatus
    created_at: datetime
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    transcript: Optional[str] = None
    summary: Optional[Dict[str, Any]] = None

    @property
    def duration_seconds(self) -> int:
        """Whole seconds between start and end, 0 while the session is open."""
        if self.started_at is None or self.ended_at is None:
            return 0
        return int((self.ended_at - self.started_at).total_seconds())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.session_id,
            "owner": self.owner,
            "title": self.title,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "endedAt": self.ended_at.isoformat() if self.ended_at else None,
            "duration": self.duration_seconds,
            "transcript": self.transcript,
            "summary": self.summary,
        }
