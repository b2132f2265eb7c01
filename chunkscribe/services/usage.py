"""Transcription usage and cost ledger.

Each transcription call appends one immutable UsageRecord. Totals are never
kept as running counters; they are aggregated from the records on read.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from ..config import ChunkScribeConfig
from ..errors import InvalidInputError, SessionNotFoundError
from ..models import UsageBucket, UsageRecord
from ..storage import SessionRepository

logger = logging.getLogger(__name__)

GRANULARITIES = ("day", "week", "month")


@dataclass(frozen=True)
class UsagePricing:
    model: str = "gemini-1.5-pro"
    input_token_cost: float = 0.0025 / 1000
    output_token_cost: float = 0.01 / 1000
    audio_seconds_per_token: float = 0.4
    chars_per_output_token: int = 4

    @classmethod
    def from_config(cls, config: ChunkScribeConfig) -> "UsagePricing":
        defaults = cls()
        return cls(
            model=config.get('usage.model', defaults.model),
            input_token_cost=float(config.get('usage.input_token_cost', defaults.input_token_cost)),
            output_token_cost=float(config.get('usage.output_token_cost', defaults.output_token_cost)),
            audio_seconds_per_token=float(config.get('usage.audio_seconds_per_token',
                                                     defaults.audio_seconds_per_token)),
            chars_per_output_token=int(config.get('usage.chars_per_output_token',
                                                  defaults.chars_per_output_token)),
        )


def period_start(moment: datetime, granularity: str) -> datetime:
    """Start of the day, ISO week (Monday) or month containing ``moment``."""
    day = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity == "day":
        return day
    if granularity == "week":
        return day - timedelta(days=day.weekday())
    if granularity == "month":
        return day.replace(day=1)
    raise InvalidInputError(f"Unsupported granularity: {granularity} (expected one of {', '.join(GRANULARITIES)})")


class UsageLedger:
    """Appends usage facts and aggregates them by period."""

    def __init__(self, repository: SessionRepository, pricing: Optional[UsagePricing] = None):
        self.repository = repository
        self.pricing = pricing or UsagePricing()

    def record_call(self,
                    session_id: str,
                    audio_seconds: float,
                    output_chars: int,
                    model: Optional[str] = None,
                    recorded_at: Optional[datetime] = None) -> UsageRecord:
        """Append the usage of one transcription call.

        Token counts are estimated from audio length and output size and
        rounded up.
        """
        if audio_seconds < 0 or output_chars < 0:
            raise InvalidInputError("Usage amounts must be non-negative")
        if self.repository.get_session(session_id) is None:
            raise SessionNotFoundError(session_id)

        input_tokens = math.ceil(audio_seconds / self.pricing.audio_seconds_per_token)
        output_tokens = math.ceil(output_chars / self.pricing.chars_per_output_token)
        cost = input_tokens * self.pricing.input_token_cost + output_tokens * self.pricing.output_token_cost

        record = UsageRecord(
            session_id=session_id,
            audio_seconds=audio_seconds,
            output_chars=output_chars,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            estimated_cost_usd=cost,
            model=model or self.pricing.model,
            recorded_at=recorded_at or datetime.now(timezone.utc),
        )
        self.repository.append_usage(record)
        logger.debug(f"Logged usage for session {session_id}: ${cost:.6f}")
        return record

    def session_totals(self, session_id: str) -> UsageBucket:
        records = self.repository.list_usage(session_id=session_id)
        bucket = UsageBucket(period_start=records[0].recorded_at if records else datetime.now(timezone.utc))
        for record in records:
            bucket.add(record)
        return bucket

    def aggregate(self,
                  granularity: str = "day",
                  since: Optional[datetime] = None,
                  until: Optional[datetime] = None) -> List[UsageBucket]:
        """Usage totals per period, oldest period first."""
        if granularity not in GRANULARITIES:
            raise InvalidInputError(
                f"Unsupported granularity: {granularity} (expected one of {', '.join(GRANULARITIES)})"
            )

        buckets: Dict[datetime, UsageBucket] = {}
        for record in self.repository.list_usage(since=since, until=until):
            start = period_start(record.recorded_at, granularity)
            if start not in buckets:
                buckets[start] = UsageBucket(period_start=start)
            buckets[start].add(record)

        return [buckets[start] for start in sorted(buckets)]
