"""Reassembly of a session's audio from its chunk payloads."""

import logging
from typing import Callable, Iterable, List

from ..errors import ChunkNotFoundError, NotFoundError, StorageError
from ..models import AssembledAudio
from ..storage import StoredChunk
from .gaps import detect_gaps

logger = logging.getLogger(__name__)

PayloadReader = Callable[[StoredChunk], bytes]


def assemble_audio(session_id: str, chunks: Iterable[StoredChunk], read_payload: PayloadReader) -> AssembledAudio:
    """Concatenate chunk payloads in ascending seq order.

    Chunks whose payload is absent or unreadable are skipped and reported;
    so are sequence numbers below the highest seq that have no chunk at all.
    A partial result is still a success.

    Args:
        session_id: Session the chunks belong to (for errors and logging)
        chunks: A single snapshot of the session's stored chunks
        read_payload: Returns the bytes for one chunk

    Raises:
        NotFoundError: no chunk payload could be read
    """
    ordered = sorted(chunks, key=lambda chunk: chunk.seq)
    gaps = detect_gaps(chunk.seq for chunk in ordered)

    parts: List[bytes] = []
    unreadable: List[int] = []
    for chunk in ordered:
        try:
            parts.append(read_payload(chunk))
        except ChunkNotFoundError:
            logger.warning(f"Payload missing for chunk {chunk.seq} of session {session_id}")
            unreadable.append(chunk.seq)
        except StorageError as e:
            logger.warning(f"Failed to read chunk {chunk.seq} of session {session_id}: {e}")
            unreadable.append(chunk.seq)

    if not parts:
        raise NotFoundError(f"No audio data available for session {session_id}")

    result = AssembledAudio(
        data=b"".join(parts),
        total_chunks=gaps.expected_chunks,
        available_chunks=len(parts),
        missing=list(gaps.missing),
        unreadable=unreadable,
    )
    if result.partial:
        logger.warning(
            f"Partial audio for session {session_id}: {result.available_chunks}/{result.total_chunks} "
            f"chunks, skipped {result.skipped}"
        )
    return result
