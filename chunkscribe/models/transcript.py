"""Transcript document models.

The transcript document is the value every export renderer consumes and the
JSON export serializes verbatim. Field names on the wire are camelCase;
Python attributes are snake_case.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Segment(BaseModel):
    """A time-bounded unit of transcript text derived from one chunk."""
    model_config = ConfigDict(populate_by_name=True)

    seq: int
    text: str
    speaker: Optional[str] = None
    start_time_ms: int = Field(alias="startTimeMs")
    end_time_ms: int = Field(alias="endTimeMs")
    confidence: Optional[float] = None


class ActionItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    item: str
    speaker: Optional[str] = None


class SummaryDocument(BaseModel):
    """Structured summary produced once a session has been processed."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    executive_summary: Optional[str] = Field(default=None, alias="executiveSummary")
    key_points: List[str] = Field(default_factory=list, alias="keyPoints")
    action_items: List[ActionItem] = Field(default_factory=list, alias="actionItems")


class TranscriptMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    duration: Optional[int] = None  # seconds
    created_at: Optional[str] = Field(default=None, alias="createdAt")


class TranscriptDocument(BaseModel):
    """Rendered transcript value for a session."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    title: Optional[str] = None
    segments: List[Segment] = Field(default_factory=list)
    speakers: List[str] = Field(default_factory=list)
    summary: Optional[SummaryDocument] = None
    metadata: Optional[TranscriptMetadata] = None
