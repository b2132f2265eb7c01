"""Chunk ingestion helpers: gap detection and audio reassembly."""

from .gaps import detect_gaps
from .assembler import assemble_audio

__all__ = ["detect_gaps", "assemble_audio"]
