"""Unit tests for the usage ledger."""

from datetime import datetime, timezone

import pytest

from chunkscribe.errors import InvalidInputError, SessionNotFoundError
from chunkscribe.services import UsageLedger, UsagePricing
from chunkscribe.services.usage import period_start


@pytest.fixture
def ledger(repository, service):
    service.create_session(owner="alice", session_id="s1")
    service.create_session(owner="bob", session_id="s2")
    return UsageLedger(repository, UsagePricing(input_token_cost=0.001, output_token_cost=0.002))


@pytest.mark.unit
class TestUsageLedger:
    """Test cases for UsageLedger."""

    def test_record_call_estimates_tokens(self, ledger):
        record = ledger.record_call("s1", audio_seconds=5.0, output_chars=10)

        assert record.input_tokens == 13  # ceil(5 / 0.4)
        assert record.output_tokens == 3  # ceil(10 / 4)
        assert record.estimated_cost_usd == pytest.approx(13 * 0.001 + 3 * 0.002)
        assert record.model == "gemini-1.5-pro"

    def test_record_call_unknown_session(self, ledger):
        with pytest.raises(SessionNotFoundError):
            ledger.record_call("nope", audio_seconds=1.0, output_chars=1)

    def test_record_call_rejects_negative_amounts(self, ledger):
        with pytest.raises(InvalidInputError):
            ledger.record_call("s1", audio_seconds=-1.0, output_chars=0)

    def test_session_totals(self, ledger):
        ledger.record_call("s1", audio_seconds=4.0, output_chars=8)
        ledger.record_call("s1", audio_seconds=2.0, output_chars=4)
        ledger.record_call("s2", audio_seconds=100.0, output_chars=400)

        totals = ledger.session_totals("s1")

        assert totals.calls == 2
        assert totals.audio_seconds == pytest.approx(6.0)
        assert totals.session_ids == {"s1"}

    def test_aggregate_by_day(self, ledger):
        ledger.record_call("s1", 1.0, 4, recorded_at=datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc))
        ledger.record_call("s2", 1.0, 4, recorded_at=datetime(2024, 3, 4, 18, 0, tzinfo=timezone.utc))
        ledger.record_call("s1", 1.0, 4, recorded_at=datetime(2024, 3, 6, 9, 0, tzinfo=timezone.utc))

        buckets = ledger.aggregate("day")

        assert [bucket.to_dict()["periodStart"] for bucket in buckets] == ["2024-03-04", "2024-03-06"]
        assert buckets[0].calls == 2
        assert buckets[0].to_dict()["sessionCount"] == 2

    def test_aggregate_by_week_and_month(self, ledger):
        # Monday 4 March and Sunday 10 March share a week; 1 April starts a new month.
        for day in (4, 10):
            ledger.record_call("s1", 1.0, 4, recorded_at=datetime(2024, 3, day, 12, tzinfo=timezone.utc))
        ledger.record_call("s1", 1.0, 4, recorded_at=datetime(2024, 4, 1, 12, tzinfo=timezone.utc))

        weeks = ledger.aggregate("week")
        months = ledger.aggregate("month")

        assert [(b.to_dict()["periodStart"], b.calls) for b in weeks] == [("2024-03-04", 2), ("2024-04-01", 1)]
        assert [(b.to_dict()["periodStart"], b.calls) for b in months] == [("2024-03-01", 2), ("2024-04-01", 1)]

    def test_aggregate_rejects_unknown_granularity(self, ledger):
        with pytest.raises(InvalidInputError):
            ledger.aggregate("year")


@pytest.mark.unit
class TestPeriodStart:

    def test_week_starts_monday(self):
        sunday = datetime(2024, 3, 10, 23, 59, tzinfo=timezone.utc)

        assert period_start(sunday, "week") == datetime(2024, 3, 4, tzinfo=timezone.utc)

    def test_month(self):
        assert period_start(datetime(2024, 2, 29, 8), "month") == datetime(2024, 2, 1)
