"""Usage and cost models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Set


@dataclass(frozen=True)
class UsageRecord:
    """Immutable fact about one transcription call."""
    session_id: str
    audio_seconds: float
    output_chars: int
    input_tokens: int
    output_tokens: int
    estimated_cost_usd: float
    model: str
    recorded_at: datetime


@dataclass
class UsageBucket:
    """Aggregate of usage records over one day, week or month."""
    period_start: datetime
    calls: int = 0
    audio_seconds: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    estimated_cost_usd: float = 0.0
    session_ids: Set[str] = field(default_factory=set)

    def add(self, record: UsageRecord) -> None:
        self.calls += 1
        self.audio_seconds += record.audio_seconds
        self.input_tokens += record.input_tokens
        self.output_tokens += record.output_tokens
        self.estimated_cost_usd += record.estimated_cost_usd
        self.session_ids.add(record.session_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "periodStart": self.period_start.date().isoformat(),
            "totalCalls": self.calls,
            "totalAudioSeconds": round(self.audio_seconds, 3),
            "totalInputTokens": self.input_tokens,
            "totalOutputTokens": self.output_tokens,
            "estimatedCostUSD": round(self.estimated_cost_usd, 6),
            "sessionCount": len(self.session_ids),
        }
