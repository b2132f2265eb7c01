"""Export format tags and their MIME types."""

from enum import Enum

from ..errors import UnsupportedFormatError


class ExportFormat(Enum):
    SRT = "srt"
    VTT = "vtt"
    JSON = "json"
    TXT = "txt"
    MD = "md"

    @classmethod
    def parse(cls, tag: str) -> "ExportFormat":
        """Map a requested format tag (case-insensitive) to an ExportFormat."""
        try:
            return cls((tag or "").strip().lower())
        except ValueError:
            raise UnsupportedFormatError(tag)

    @property
    def mime_type(self) -> str:
        return MIME_TYPES[self]


MIME_TYPES = {
    ExportFormat.SRT: "application/x-subrip",
    ExportFormat.VTT: "text/vtt",
    ExportFormat.JSON: "application/json",
    ExportFormat.TXT: "text/plain",
    ExportFormat.MD: "text/markdown",
}
