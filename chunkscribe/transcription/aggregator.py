"""Transcript aggregation over a session's chunk set.

Segments are derived from the chunk records every time they are needed and
are never stored, so the chunk table stays the only source of truth.

Timing: a chunk that carries explicit start/end milliseconds keeps them.
Otherwise its cue is synthesized as ``seq * nominal_chunk_ms`` to
``(seq + 1) * nominal_chunk_ms``. This is reproducible but only an
approximation of where the audio really sits when chunk lengths vary.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List

from ..models import (
    DiarizationMetrics,
    RecordingSession,
    Segment,
    SummaryDocument,
    TranscriptChunk,
    TranscriptDocument,
    TranscriptMetadata,
)
from .diarization import compute_diarization_metrics

logger = logging.getLogger(__name__)

DEFAULT_NOMINAL_CHUNK_MS = 5000

_WHITESPACE = re.compile(r"\s+")


@dataclass
class AggregatedTranscript:
    """Ordered segments plus session-level text statistics."""
    segments: List[Segment] = field(default_factory=list)
    full_text: str = ""
    word_count: int = 0
    speakers: List[str] = field(default_factory=list)
    total_chunks: int = 0
    transcribed_chunks: int = 0
    diarization: DiarizationMetrics = field(default_factory=DiarizationMetrics)


class TranscriptAggregator:
    """Merges chunk-level transcription results into ordered segments."""

    def __init__(self, nominal_chunk_ms: int = DEFAULT_NOMINAL_CHUNK_MS):
        """Initialize transcript aggregator.

        Args:
            nominal_chunk_ms: Assumed length of one chunk, used when a chunk
                              has no explicit timing
        """
        if nominal_chunk_ms <= 0:
            raise ValueError(f"nominal_chunk_ms must be positive, got {nominal_chunk_ms}")
        self.nominal_chunk_ms = nominal_chunk_ms

    def segment_for(self, chunk: TranscriptChunk) -> Segment:
        if chunk.start_ms is not None and chunk.end_ms is not None:
            start_ms, end_ms = chunk.start_ms, chunk.end_ms
        else:
            start_ms = chunk.seq * self.nominal_chunk_ms
            end_ms = start_ms + self.nominal_chunk_ms

        return Segment(
            seq=chunk.seq,
            text=chunk.text,
            speaker=chunk.speaker,
            start_time_ms=start_ms,
            end_time_ms=end_ms,
            confidence=chunk.confidence,
        )

    def aggregate(self, chunks: Iterable[TranscriptChunk]) -> AggregatedTranscript:
        """Build the segment list for one snapshot of a session's chunks.

        Chunks without text are left out of the segments but still counted
        in ``total_chunks``.
        """
        ordered = sorted(chunks, key=lambda chunk: chunk.seq)
        segments = [self.segment_for(chunk) for chunk in ordered if chunk.text is not None]

        full_text = _WHITESPACE.sub(" ", " ".join(segment.text for segment in segments)).strip()
        speakers = sorted({segment.speaker for segment in segments if segment.speaker is not None})

        logger.debug(f"Aggregated {len(segments)} segments from {len(ordered)} chunks")
        return AggregatedTranscript(
            segments=segments,
            full_text=full_text,
            word_count=len(full_text.split()),
            speakers=speakers,
            total_chunks=len(ordered),
            transcribed_chunks=len(segments),
            diarization=compute_diarization_metrics(segments),
        )

    def build_document(self, session: RecordingSession, chunks: Iterable[TranscriptChunk]) -> TranscriptDocument:
        """Build the transcript document that export renderers consume."""
        chunk_list = list(chunks)
        aggregated = self.aggregate(chunk_list)

        return TranscriptDocument(
            session_id=session.session_id,
            title=session.title or f"Recording {session.session_id[:8]}",
            segments=aggregated.segments,
            speakers=aggregated.speakers,
            summary=SummaryDocument.model_validate(session.summary) if session.summary else None,
            metadata=TranscriptMetadata(
                duration=len(chunk_list) * self.nominal_chunk_ms // 1000,
                created_at=session.created_at.isoformat(),
            ),
        )
