"""ChunkScribe - chunked recording sessions, gap detection and transcript export."""

__version__ = "0.1.0"
