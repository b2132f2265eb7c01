"""Transcript aggregation for ChunkScribe."""

from .aggregator import AggregatedTranscript, TranscriptAggregator, DEFAULT_NOMINAL_CHUNK_MS
from .diarization import compute_diarization_metrics, UNKNOWN_SPEAKER

__all__ = [
    "AggregatedTranscript",
    "TranscriptAggregator",
    "DEFAULT_NOMINAL_CHUNK_MS",
    "compute_diarization_metrics",
    "UNKNOWN_SPEAKER",
]
