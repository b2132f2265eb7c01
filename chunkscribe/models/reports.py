"""Report values computed on read from a session's chunk set."""

from dataclasses import dataclass, field
from typing import List, Dict, Any


@dataclass(frozen=True)
class GapReport:
    """Missing-chunk report for a session."""
    missing: List[int]
    max_seq: int
    total_chunks: int
    expected_chunks: int
    complete: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "missing": list(self.missing),
            "maxSeq": self.max_seq,
            "totalChunks": self.total_chunks,
            "expectedChunks": self.expected_chunks,
            "complete": self.complete,
        }


@dataclass
class AssembledAudio:
    """Concatenated chunk payloads plus what was left out."""
    data: bytes
    total_chunks: int
    available_chunks: int
    missing: List[int] = field(default_factory=list)
    unreadable: List[int] = field(default_factory=list)

    @property
    def skipped(self) -> List[int]:
        return sorted(self.missing + self.unreadable)

    @property
    def partial(self) -> bool:
        return bool(self.missing or self.unreadable)


@dataclass(frozen=True)
class TranscriptionProgress:
    """Per-status chunk counts for a session."""
    total: int
    succeeded: int
    pending: int
    failed: int

    @property
    def progress(self) -> float:
        if self.total == 0:
            return 0.0
        return round(self.succeeded / self.total * 100, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "transcribed": self.succeeded,
            "pending": self.pending,
            "failed": self.failed,
            "progress": self.progress,
        }


@dataclass(frozen=True)
class DiarizationMetrics:
    """Speaker-labelling quality heuristics over a transcript's segments.

    Rates are percentages. ``score`` is 0-100: higher means fewer speaker
    flips, longer segments and fewer unlabelled segments.
    """
    speaker_change_percent: float = 0.0
    avg_segment_duration_sec: float = 0.0
    unknown_speaker_rate: float = 0.0
    speaker_count: int = 0
    score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "speakerChangePercent": self.speaker_change_percent,
            "avgSegmentDurationSec": self.avg_segment_duration_sec,
            "unknownSpeakerRate": self.unknown_speaker_rate,
            "speakerCount": self.speaker_count,
            "score": self.score,
        }
