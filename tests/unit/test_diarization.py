"""Unit tests for diarization metrics."""

import pytest

from chunkscribe.models import DiarizationMetrics, Segment
from chunkscribe.transcription import UNKNOWN_SPEAKER, compute_diarization_metrics


def segment(seq, speaker, start_ms=None, end_ms=None):
    start_ms = seq * 5000 if start_ms is None else start_ms
    end_ms = start_ms + 5000 if end_ms is None else end_ms
    return Segment(seq=seq, text="x", speaker=speaker, start_time_ms=start_ms, end_time_ms=end_ms)


@pytest.mark.unit
class TestDiarizationMetrics:
    """Test cases for compute_diarization_metrics."""

    def test_empty(self):
        metrics = compute_diarization_metrics([])

        assert metrics == DiarizationMetrics()
        assert metrics.to_dict() == {
            "speakerChangePercent": 0.0,
            "avgSegmentDurationSec": 0.0,
            "unknownSpeakerRate": 0.0,
            "speakerCount": 0,
            "score": 0,
        }

    def test_single_labelled_segment(self):
        metrics = compute_diarization_metrics([segment(0, "Ann")])

        assert metrics.speaker_change_percent == 0.0
        assert metrics.avg_segment_duration_sec == 5.0
        assert metrics.unknown_speaker_rate == 0.0
        assert metrics.speaker_count == 1
        assert metrics.score == 85

    def test_single_unlabelled_segment(self):
        metrics = compute_diarization_metrics([segment(0, None)])

        assert metrics.unknown_speaker_rate == 100.0
        assert metrics.speaker_count == 0
        assert metrics.score == 65

    def test_mixed_speakers(self):
        segments = [segment(0, "Ann"), segment(1, "Bob"), segment(2, "Ann"), segment(3, None)]

        metrics = compute_diarization_metrics(segments)

        assert metrics.to_dict() == {
            "speakerChangePercent": 100.0,
            "avgSegmentDurationSec": 5.0,
            "unknownSpeakerRate": 25.0,
            "speakerCount": 2,
            "score": 25,
        }

    def test_unknown_label_counts_as_unknown_but_as_a_speaker(self):
        metrics = compute_diarization_metrics([segment(0, UNKNOWN_SPEAKER), segment(1, "Ann")])

        assert metrics.unknown_speaker_rate == 50.0
        assert metrics.speaker_count == 2

    def test_rates_round_to_two_decimals(self):
        segments = [segment(0, "Ann"), segment(1, "Ann"), segment(2, "Ann"), segment(3, "Bob")]

        metrics = compute_diarization_metrics(segments)

        assert metrics.speaker_change_percent == 33.33

    def test_long_segments_cap_duration_score(self):
        metrics = compute_diarization_metrics([segment(0, "Ann", 0, 60000), segment(1, "Ann", 60000, 120000)])

        assert metrics.avg_segment_duration_sec == 60.0
        assert metrics.score == 100

    def test_negative_spans_count_as_zero(self):
        metrics = compute_diarization_metrics([segment(0, "Ann", 5000, 1000)])

        assert metrics.avg_segment_duration_sec == 0.0
        assert metrics.score == 70
