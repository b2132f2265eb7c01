"""Transcript export: format tags and renderers."""

from .formats import ExportFormat, MIME_TYPES
from .renderers import (
    TextExportOptions,
    format_srt_timestamp,
    format_vtt_timestamp,
    to_srt,
    to_vtt,
    to_json,
    to_plain_text,
    to_markdown,
    render,
)

__all__ = [
    "ExportFormat",
    "MIME_TYPES",
    "TextExportOptions",
    "format_srt_timestamp",
    "format_vtt_timestamp",
    "to_srt",
    "to_vtt",
    "to_json",
    "to_plain_text",
    "to_markdown",
    "render",
]
