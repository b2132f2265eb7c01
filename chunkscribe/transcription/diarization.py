"""Speaker diarization quality metrics."""

import math
from typing import Optional, Sequence

from ..models import DiarizationMetrics, Segment

UNKNOWN_SPEAKER = "SPEAKER_UNKNOWN"


def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def _is_unknown(speaker: Optional[str]) -> bool:
    return not speaker or speaker == UNKNOWN_SPEAKER


def compute_diarization_metrics(segments: Sequence[Segment]) -> DiarizationMetrics:
    """Score how cleanly the segments are attributed to speakers.

    A speaker change is any boundary between consecutive segments whose
    speaker labels differ; a single segment has one (unchanged) boundary.
    """
    if not segments:
        return DiarizationMetrics()

    boundaries = max(len(segments) - 1, 1)
    changes = sum(1 for prev, cur in zip(segments, segments[1:]) if prev.speaker != cur.speaker)
    total_ms = sum(max(0, segment.end_time_ms - segment.start_time_ms) for segment in segments)
    unknown = sum(1 for segment in segments if _is_unknown(segment.speaker))
    speakers = {segment.speaker for segment in segments if segment.speaker}

    change_percent = changes / boundaries * 100
    avg_duration_sec = total_ms / 1000 / len(segments)
    unknown_rate = unknown / len(segments) * 100

    change_score = max(0.0, 100 - change_percent)
    duration_score = min(100, math.floor(avg_duration_sec * 10))
    unknown_penalty = max(0.0, 100 - unknown_rate * 2)
    score = int(_round_half_up(change_score * 0.5 + duration_score * 0.3 + unknown_penalty * 0.2))

    return DiarizationMetrics(
        speaker_change_percent=_round_half_up(change_percent, 2),
        avg_segment_duration_sec=_round_half_up(avg_duration_sec, 2),
        unknown_speaker_rate=_round_half_up(unknown_rate, 2),
        speaker_count=len(speakers),
        score=max(0, min(100, score)),
    )
