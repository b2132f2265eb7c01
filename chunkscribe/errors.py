"""Error taxonomy for session ingestion, reassembly and export."""

from typing import Optional


class ChunkScribeError(Exception):
    """Base class for all ChunkScribe errors."""


class NotFoundError(ChunkScribeError):
    """A session, chunk or chunk payload does not exist."""


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class ChunkNotFoundError(NotFoundError):
    def __init__(self, session_id: str, seq: int):
        super().__init__(f"Chunk {seq} not found for session {session_id}")
        self.session_id = session_id
        self.seq = seq


class InvalidStateError(ChunkScribeError):
    """Operation is not legal for the session's current lifecycle state."""

    def __init__(self, session_id: str, status: Optional[str], operation: str, detail: str = ""):
        message = f"Cannot {operation} session {session_id} in state '{status}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.session_id = session_id
        self.status = status
        self.operation = operation


class InvalidInputError(ChunkScribeError):
    """Malformed request data (bad seq, missing upload field, bad option)."""


class UnsupportedFormatError(InvalidInputError):
    def __init__(self, format_tag: str):
        super().__init__(f"Unsupported export format: {format_tag}")
        self.format_tag = format_tag


class StorageError(ChunkScribeError):
    """Payload storage failed for a reason other than the payload being absent."""


class UpstreamFailure(ChunkScribeError):
    """A transcription or usage collaborator reported a failure.

    Recorded against the chunk and the event log; never fails the session.
    """
