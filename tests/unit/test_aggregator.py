"""Unit tests for TranscriptAggregator."""

import pytest

from chunkscribe.transcription import TranscriptAggregator


@pytest.mark.unit
class TestTranscriptAggregator:
    """Test cases for TranscriptAggregator."""

    def test_null_text_chunks_are_dropped(self, make_chunk):
        chunks = [
            make_chunk(0, "Hello", confidence=0.95),
            make_chunk(1, None),
            make_chunk(2, "world", confidence=0.6),
        ]

        result = TranscriptAggregator(5000).aggregate(chunks)

        assert [segment.seq for segment in result.segments] == [0, 2]
        first, second = result.segments
        assert (first.text, first.start_time_ms, first.end_time_ms) == ("Hello", 0, 5000)
        assert (second.text, second.start_time_ms, second.end_time_ms) == ("world", 10000, 15000)
        assert result.total_chunks == 3
        assert result.transcribed_chunks == 2
        assert result.full_text == "Hello world"
        assert result.word_count == 2

    def test_segments_follow_seq_not_input_order(self, make_chunk):
        chunks = [make_chunk(3, "c"), make_chunk(0, "a"), make_chunk(1, "b")]

        result = TranscriptAggregator(1000).aggregate(chunks)

        assert [segment.text for segment in result.segments] == ["a", "b", "c"]
        starts = [segment.start_time_ms for segment in result.segments]
        assert starts == sorted(starts)

    def test_explicit_timing_is_kept(self, make_chunk):
        chunk = make_chunk(4, "late", start_ms=21000, end_ms=23500)

        segment = TranscriptAggregator(5000).segment_for(chunk)

        assert segment.start_time_ms == 21000
        assert segment.end_time_ms == 23500

    def test_speakers_are_unique_and_sorted(self, make_chunk):
        chunks = [
            make_chunk(0, "hi", speaker="Zoe"),
            make_chunk(1, "hey", speaker="Adam"),
            make_chunk(2, "yo", speaker="Zoe"),
            make_chunk(3, "ok"),
        ]

        result = TranscriptAggregator().aggregate(chunks)

        assert result.speakers == ["Adam", "Zoe"]

    def test_full_text_collapses_whitespace(self, make_chunk):
        chunks = [make_chunk(0, "  one\n two "), make_chunk(1, "three\t")]

        result = TranscriptAggregator().aggregate(chunks)

        assert result.full_text == "one two three"
        assert result.word_count == 3

    def test_build_document(self, make_chunk, make_session):
        session = make_session(summary={"executiveSummary": "Short.", "keyPoints": ["a"]})
        chunks = [make_chunk(0, "Hello", speaker="Ann"), make_chunk(1, None)]

        document = TranscriptAggregator(5000).build_document(session, chunks)

        assert document.session_id == "sess-1"
        assert document.title == "Weekly sync"
        assert len(document.segments) == 1
        assert document.speakers == ["Ann"]
        assert document.summary.executive_summary == "Short."
        assert document.metadata.duration == 10
        assert document.metadata.created_at == "2024-01-15T10:30:00+00:00"

    def test_build_document_default_title(self, make_session):
        document = TranscriptAggregator().build_document(make_session(session_id="abcdef123456", title=""), [])

        assert document.title == "Recording abcdef12"
        assert document.segments == []
        assert document.summary is None

    @pytest.mark.parametrize("nominal", [0, -5000])
    def test_rejects_non_positive_nominal_length(self, nominal):
        with pytest.raises(ValueError):
            TranscriptAggregator(nominal)

    def test_diarization_metrics_cover_transcribed_segments(self, make_chunk):
        chunks = [
            make_chunk(0, "hi", speaker="Ann"),
            make_chunk(1, None, speaker="Bob"),
            make_chunk(2, "yo", speaker="Ann"),
        ]

        result = TranscriptAggregator(5000).aggregate(chunks)

        assert result.diarization.speaker_change_percent == 0.0
        assert result.diarization.speaker_count == 1
        assert result.diarization.avg_segment_duration_sec == 5.0
