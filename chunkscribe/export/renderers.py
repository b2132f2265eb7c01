"""Transcript renderers.

Every renderer is a pure function of a TranscriptDocument. Optional fields
that are absent are left out of the output rather than rendered empty, and
a document with no segments renders to headers only.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from ..errors import UnsupportedFormatError
from ..models import Segment, TranscriptDocument
from .formats import ExportFormat


@dataclass(frozen=True)
class TextExportOptions:
    """Which optional fields the plain-text export includes per line."""
    include_speakers: bool = True
    include_timestamps: bool = False
    include_confidence: bool = False


def _split_ms(ms: int):
    hours = ms // 3600000
    minutes = (ms % 3600000) // 60000
    seconds = (ms % 60000) // 1000
    return hours, minutes, seconds, ms % 1000


def format_srt_timestamp(ms: int) -> str:
    """Format milliseconds as HH:MM:SS,mmm."""
    hours, minutes, seconds, millis = _split_ms(ms)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{millis:03d}"


def format_vtt_timestamp(ms: int) -> str:
    """Format milliseconds as HH:MM:SS.mmm."""
    hours, minutes, seconds, millis = _split_ms(ms)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"


def to_srt(document: TranscriptDocument) -> str:
    cues = []
    for index, segment in enumerate(document.segments, 1):
        text = f"{segment.speaker}: {segment.text}" if segment.speaker else segment.text
        cues.append(
            f"{index}\n"
            f"{format_srt_timestamp(segment.start_time_ms)} --> {format_srt_timestamp(segment.end_time_ms)}\n"
            f"{text}\n\n"
        )
    return "".join(cues)


def to_vtt(document: TranscriptDocument) -> str:
    parts = ["WEBVTT\n\n"]
    if document.title:
        parts.append(f"NOTE {document.title}\n\n")

    for index, segment in enumerate(document.segments, 1):
        text = f"<v {segment.speaker}>{segment.text}" if segment.speaker else segment.text
        parts.append(
            f"{index}\n"
            f"{format_vtt_timestamp(segment.start_time_ms)} --> {format_vtt_timestamp(segment.end_time_ms)}\n"
            f"{text}\n\n"
        )
    return "".join(parts)


def to_json(document: TranscriptDocument) -> str:
    """Lossless export: the document itself, camelCase keys, absent fields omitted."""
    return document.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def _text_line(segment: Segment, options: TextExportOptions) -> str:
    parts: List[str] = []
    if options.include_timestamps:
        parts.append(f"[{format_vtt_timestamp(segment.start_time_ms)}]")
    if options.include_speakers and segment.speaker:
        parts.append(f"{segment.speaker}:")
    if options.include_confidence and segment.confidence is not None:
        parts.append(f"({segment.confidence * 100:.0f}%)")
    parts.append(segment.text)
    return " ".join(parts)


def to_plain_text(document: TranscriptDocument, options: Optional[TextExportOptions] = None) -> str:
    options = options or TextExportOptions()
    return "\n".join(_text_line(segment, options) for segment in document.segments)


def _format_date(value: str) -> str:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return value
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
        return parsed.strftime("%Y-%m-%d %H:%M:%S UTC")
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


def to_markdown(document: TranscriptDocument) -> str:
    lines: List[str] = []

    if document.title:
        lines += [f"# {document.title}", ""]

    if document.metadata is not None:
        lines += ["## Metadata", ""]
        if document.metadata.created_at:
            lines.append(f"**Date:** {_format_date(document.metadata.created_at)}")
        if document.metadata.duration:
            minutes, seconds = divmod(document.metadata.duration, 60)
            lines.append(f"**Duration:** {minutes}m {seconds}s")
        if document.speakers:
            lines.append(f"**Speakers:** {', '.join(document.speakers)}")
        lines.append("")

    lines += ["## Transcript", ""]
    for segment in document.segments:
        lines.append(f"**{segment.speaker}:** {segment.text}" if segment.speaker else segment.text)
        lines.append("")

    summary = document.summary
    if summary is not None:
        lines += ["## Summary", ""]
        if summary.executive_summary:
            lines += [summary.executive_summary, ""]
        if summary.key_points:
            lines += ["### Key Points", ""]
            lines += [f"- {point}" for point in summary.key_points]
            lines.append("")
        if summary.action_items:
            lines += ["### Action Items", ""]
            lines += [f"- **{item.speaker or 'Team'}:** {item.item}" for item in summary.action_items]
            lines.append("")

    return "\n".join(lines)


def render(document: TranscriptDocument,
           export_format: ExportFormat,
           text_options: Optional[TextExportOptions] = None) -> str:
    """Render a transcript document in the requested format."""
    if export_format is ExportFormat.SRT:
        return to_srt(document)
    if export_format is ExportFormat.VTT:
        return to_vtt(document)
    if export_format is ExportFormat.JSON:
        return to_json(document)
    if export_format is ExportFormat.TXT:
        return to_plain_text(document, text_options)
    if export_format is ExportFormat.MD:
        return to_markdown(document)
    raise UnsupportedFormatError(str(export_format))
