"""Transcript chunk model."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any


class ChunkStatus(Enum):
    """Transcription status of a single chunk."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class TranscriptChunk:
    """One uploaded audio chunk and whatever transcription it has so far.

    (session_id, seq) is unique. Sequence numbers need not be contiguous.
    """
    session_id: str
    seq: int
    audio_ref: str
    created_at: datetime
    duration_ms: Optional[int] = None
    text: Optional[str] = None
    speaker: Optional[str] = None
    confidence: Optional[float] = None
    status: ChunkStatus = ChunkStatus.PENDING
    start_ms: Optional[int] = None  # explicit timing from the transcriber, if any
    end_ms: Optional[int] = None
    flagged: bool = False
    review_note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "audioPath": self.audio_ref,
            "durationMs": self.duration_ms,
            "text": self.text,
            "speaker": self.speaker,
            "confidence": self.confidence,
            "status": self.status.value,
            "startMs": self.start_ms,
            "endMs": self.end_ms,
            "flagged": self.flagged,
            "reviewNote": self.review_note,
            "createdAt": self.created_at.isoformat(),
        }
