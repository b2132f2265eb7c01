"""Pytest configuration and fixtures for ChunkScribe tests."""

import pytest
import tempfile
import logging
from datetime import datetime, timezone

from chunkscribe.config import ChunkScribeConfig
from chunkscribe.models import ChunkStatus, RecordingSession, SessionStatus, TranscriptChunk
from chunkscribe.services import SessionService
from chunkscribe.storage import AudioPayloadStore, SessionRepository


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def test_config(temp_data_dir):
    """Configuration rooted in the temporary data directory."""
    return ChunkScribeConfig.from_dict(
        {
            "storage": {"data_directory": temp_data_dir},
            "transcript": {"nominal_chunk_ms": 5000},
            "polling": {"interval_seconds": 0.0, "max_attempts": 3},
            "logging": {"console_output": False},
        },
        base_dir=temp_data_dir,
    )


@pytest.fixture
def repository(test_config):
    repo = SessionRepository(test_config.get_database_path())
    yield repo
    repo.close()


@pytest.fixture
def payloads(test_config):
    return AudioPayloadStore(test_config.get_data_directory(), "webm")


@pytest.fixture
def service(repository, payloads):
    return SessionService(repository, payloads, nominal_chunk_ms=5000, poll_interval=0.0, poll_attempts=3)


@pytest.fixture
def recording_session(service):
    """A session that has been started and accepts uploads."""
    session = service.create_session(owner="alice", title="Weekly sync", session_id="sess-1")
    service.start_session(session.session_id, actor="alice")
    return service.get_session(session.session_id)


@pytest.fixture
def make_chunk():
    """Build TranscriptChunk values without touching storage."""
    def _make(seq, text=None, speaker=None, confidence=None, start_ms=None, end_ms=None,
              session_id="sess-1"):
        return TranscriptChunk(
            session_id=session_id,
            seq=seq,
            audio_ref=f"/tmp/{seq:06d}.webm",
            created_at=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
            text=text,
            speaker=speaker,
            confidence=confidence,
            status=ChunkStatus.SUCCEEDED if text is not None else ChunkStatus.PENDING,
            start_ms=start_ms,
            end_ms=end_ms,
        )

    return _make


@pytest.fixture
def make_session():
    def _make(session_id="sess-1", title="Weekly sync", summary=None):
        return RecordingSession(
            session_id=session_id,
            owner="alice",
            title=title,
            status=SessionStatus.STOPPED,
            created_at=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
            summary=summary,
        )

    return _make
