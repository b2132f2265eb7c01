"""Keyed storage for chunk payloads and their metadata."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from ..errors import InvalidInputError
from ..models import SessionStatus, TranscriptChunk
from .payloads import AudioPayloadStore
from .repository import SessionRepository

logger = logging.getLogger(__name__)

LOCK_STRIPES = 64


@dataclass(frozen=True)
class StoredChunk:
    """Entry returned by ``ChunkStore.list``."""
    seq: int
    ref: str
    duration_ms: Optional[int]


def validate_seq(seq) -> int:
    """Accept non-negative integers (or their decimal string form) as seq."""
    if isinstance(seq, bool):
        raise InvalidInputError(f"Invalid chunk sequence number: {seq!r}")
    if isinstance(seq, str):
        if not seq.strip().isdigit():
            raise InvalidInputError(f"Invalid chunk sequence number: {seq!r}")
        seq = int(seq)
    if not isinstance(seq, int) or seq < 0:
        raise InvalidInputError(f"Invalid chunk sequence number: {seq!r}")
    return seq


class ChunkStore:
    """Puts, lists and reads chunks of a session.

    ``put`` is idempotent per (session_id, seq): the payload file and the
    record are keyed on seq, so repeated delivery overwrites. Distinct seq
    values touch distinct files and rows.

    Writes for the same (session_id, seq) hold a striped lock from the record
    upsert until the payload is in place, so the stored bytes and the stored
    duration always come from the same put.
    """

    def __init__(self, payloads: AudioPayloadStore, repository: SessionRepository):
        self.payloads = payloads
        self.repository = repository
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

    def _lock_for(self, session_id: str, seq: int) -> threading.Lock:
        return self._locks[hash((session_id, seq)) % LOCK_STRIPES]

    def put(self,
            session_id: str,
            seq: int,
            data: bytes,
            duration_ms: Optional[int] = None,
            accepting: Iterable[SessionStatus] = (SessionStatus.RECORDING, SessionStatus.PAUSED)) -> Optional[str]:
        """Store a chunk payload and upsert its record.

        The payload is staged first and only moved into place once the
        record has been written under the session-status condition.

        Returns:
            The storage reference, or None if the session is missing or
            not in one of the ``accepting`` states
        """
        seq = validate_seq(seq)
        if not data:
            raise InvalidInputError("Chunk payload is empty")
        if duration_ms is not None and (isinstance(duration_ms, bool) or not isinstance(duration_ms, int)
                                        or duration_ms < 0):
            raise InvalidInputError(f"Invalid chunk duration: {duration_ms!r}")

        ref = str(self.payloads.chunk_path(session_id, seq))
        staged = self.payloads.stage(session_id, seq, data)

        chunk = TranscriptChunk(
            session_id=session_id,
            seq=seq,
            audio_ref=ref,
            created_at=datetime.now(timezone.utc),
            duration_ms=duration_ms,
        )
        with self._lock_for(session_id, seq):
            if not self.repository.upsert_chunk(chunk, accepting):
                self.payloads.discard(staged)
                return None
            self.payloads.commit(staged, session_id, seq)

        logger.info(f"Stored chunk {seq} for session {session_id} ({len(data)} bytes)")
        return ref

    def list(self, session_id: str) -> List[StoredChunk]:
        return [
            StoredChunk(seq=chunk.seq, ref=chunk.audio_ref, duration_ms=chunk.duration_ms)
            for chunk in self.repository.list_chunks(session_id)
        ]

    def read(self, session_id: str, seq: int, ref: Optional[str] = None) -> bytes:
        """Read a chunk payload.

        Raises:
            ChunkNotFoundError: no record or no payload for this seq
            StorageError: the payload exists but could not be read
        """
        if ref is None:
            ref = str(self.payloads.chunk_path(session_id, validate_seq(seq)))
        return self.payloads.read(session_id, seq, ref)

    def delete_session(self, session_id: str) -> bool:
        return self.payloads.delete_session(session_id)
