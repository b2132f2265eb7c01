"""File storage for chunk audio payloads."""

import os
import re
import logging
import shutil
import tempfile
from pathlib import Path

from ..errors import ChunkNotFoundError, InvalidInputError, StorageError


logger = logging.getLogger(__name__)

_SAFE_SESSION_ID = re.compile(r"^[A-Za-z0-9_\-]+$")


class AudioPayloadStore:
    """Stores one file per (session, seq) under the data directory.

    The file name is derived from the sequence number only, so a repeated
    upload of the same seq replaces the previous payload instead of adding
    a second file. Writes go to a temporary file first and are moved into
    place with ``os.replace``; readers see either the old or the new bytes.
    """

    def __init__(self, data_dir: str = "./data", extension: str = "webm"):
        """Initialize payload store with data directory.

        Args:
            data_dir: Base directory for storing all data
            extension: File extension used for chunk payloads
        """
        self.data_dir = Path(data_dir)
        self.chunks_dir = self.data_dir / "chunks"
        self.extension = extension.lstrip(".")

        self.chunks_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"AudioPayloadStore initialized with data_dir: {self.data_dir}")

    def get_session_path(self, session_id: str) -> Path:
        """Get full path to a session's payload directory."""
        if not isinstance(session_id, str) or not _SAFE_SESSION_ID.match(session_id):
            raise InvalidInputError(f"Invalid session id: {session_id!r}")
        return self.chunks_dir / session_id

    def chunk_path(self, session_id: str, seq: int) -> Path:
        return self.get_session_path(session_id) / f"{seq:06d}.{self.extension}"

    def stage(self, session_id: str, seq: int, data: bytes) -> str:
        """Write a payload to a temporary file next to its final location.

        Returns:
            Path of the staged file, to be passed to ``commit`` or ``discard``
        """
        target = self.chunk_path(session_id, seq)
        tmp_name = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{seq:06d}-", suffix=".part", dir=str(target.parent))
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Error staging chunk {seq} for session {session_id}: {e}")
            if tmp_name:
                self.discard(tmp_name)
            raise StorageError(f"Failed to save chunk {seq} for session {session_id}: {e}") from e
        return tmp_name

    def commit(self, staged_path: str, session_id: str, seq: int) -> str:
        """Move a staged payload into place, replacing any previous payload."""
        target = self.chunk_path(session_id, seq)
        try:
            os.replace(staged_path, target)
        except OSError as e:
            logger.error(f"Error saving chunk {seq} for session {session_id}: {e}")
            self.discard(staged_path)
            raise StorageError(f"Failed to save chunk {seq} for session {session_id}: {e}") from e

        logger.debug(f"Chunk payload saved: {target}")
        return str(target)

    def discard(self, staged_path: str) -> None:
        try:
            os.unlink(staged_path)
        except FileNotFoundError:
            pass

    def read(self, session_id: str, seq: int, ref: str) -> bytes:
        """Read a chunk payload.

        Raises:
            ChunkNotFoundError: the payload file does not exist
            StorageError: the file exists but could not be read
        """
        try:
            with open(ref, 'rb') as f:
                return f.read()
        except FileNotFoundError:
            raise ChunkNotFoundError(session_id, seq)
        except OSError as e:
            raise StorageError(f"Failed to read chunk {seq} for session {session_id}: {e}") from e

    def delete_session(self, session_id: str) -> bool:
        """Remove every payload of a session.

        Returns:
            True if a payload directory existed and was removed
        """
        session_path = self.get_session_path(session_id)
        if not session_path.exists():
            return False
        shutil.rmtree(session_path)
        logger.info(f"Deleted payload directory: {session_path}")
        return True
