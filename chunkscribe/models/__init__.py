"""Data models for the ChunkScribe application."""

from .session import SessionStatus, RecordingSession
from .chunk import ChunkStatus, TranscriptChunk
from .events import EventType, RecordingEvent
from .usage import UsageRecord, UsageBucket
from .reports import GapReport, AssembledAudio, TranscriptionProgress, DiarizationMetrics
from .transcript import (
    Segment,
    ActionItem,
    SummaryDocument,
    TranscriptMetadata,
    TranscriptDocument,
)

__all__ = [
    "SessionStatus",
    "RecordingSession",
    "ChunkStatus",
    "TranscriptChunk",
    "EventType",
    "RecordingEvent",
    "UsageRecord",
    "UsageBucket",
    "GapReport",
    "AssembledAudio",
    "TranscriptionProgress",
    "DiarizationMetrics",
    # Export document
    "Segment",
    "ActionItem",
    "SummaryDocument",
    "TranscriptMetadata",
    "TranscriptDocument",
]
