"""Storage layer: chunk payload files and the session repository."""

from .payloads import AudioPayloadStore
from .repository import SessionRepository
from .chunk_store import ChunkStore, StoredChunk, validate_seq

__all__ = [
    "AudioPayloadStore",
    "SessionRepository",
    "ChunkStore",
    "StoredChunk",
    "validate_seq",
]
