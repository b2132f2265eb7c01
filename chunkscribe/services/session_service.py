"""Session service: the operations exposed to callers.

This service ties the pieces together:
1. Create sessions and drive their lifecycle (start/pause/resume/stop)
2. Accept chunk uploads and transcription results
3. Report missing chunks, reassemble audio, and export transcripts
4. Clean up old sessions

Every read works from a single fetch of the session's chunk set.
"""

import logging
import math
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from ..config import ChunkScribeConfig
from ..errors import (
    ChunkNotFoundError,
    InvalidInputError,
    InvalidStateError,
    SessionNotFoundError,
    UpstreamFailure,
)
from ..export import ExportFormat, TextExportOptions, render
from ..ingest import assemble_audio, detect_gaps
from ..models import (
    AssembledAudio,
    EventType,
    GapReport,
    RecordingEvent,
    RecordingSession,
    SessionStatus,
    SummaryDocument,
    TranscriptChunk,
    TranscriptDocument,
    TranscriptionProgress,
    UsageBucket,
)
from ..storage import AudioPayloadStore, ChunkStore, SessionRepository, validate_seq
from ..transcription import AggregatedTranscript, TranscriptAggregator
from .event_log import EventLog
from .lifecycle import SessionLifecycle, UPLOAD_STATES
from .usage import UsageLedger, UsagePricing

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class ExportResult:
    content: str
    export_format: ExportFormat
    filename: str

    @property
    def mime_type(self) -> str:
        return self.export_format.mime_type


class SessionService:
    """High-level API over sessions, chunks, transcripts and exports."""

    def __init__(self,
                 repository: SessionRepository,
                 payloads: AudioPayloadStore,
                 nominal_chunk_ms: int = 5000,
                 page_size: int = 50,
                 poll_interval: float = 2.0,
                 poll_attempts: int = 30,
                 pricing: Optional[UsagePricing] = None):
        self.repository = repository
        self.chunk_store = ChunkStore(payloads, repository)
        self.event_log = EventLog(repository)
        self.lifecycle = SessionLifecycle(repository, self.event_log)
        self.aggregator = TranscriptAggregator(nominal_chunk_ms)
        self.usage = UsageLedger(repository, pricing)
        self.page_size = page_size
        self.poll_interval = poll_interval
        self.poll_attempts = poll_attempts
        self.config: Optional[ChunkScribeConfig] = None

        logger.info("SessionService initialized")

    @classmethod
    def from_config(cls, config: ChunkScribeConfig) -> "SessionService":
        """Build the service and its stores from configuration."""
        service = cls(
            repository=SessionRepository(config.get_database_path()),
            payloads=AudioPayloadStore(config.get_data_directory(),
                                       config.get('storage.audio_extension', 'webm')),
            nominal_chunk_ms=config.get_nominal_chunk_ms(),
            page_size=int(config.get('sessions.page_size', 50)),
            poll_interval=float(config.get('polling.interval_seconds', 2.0)),
            poll_attempts=int(config.get('polling.max_attempts', 30)),
            pricing=UsagePricing.from_config(config),
        )
        service.config = config
        return service

    # -- Sessions --

    def create_session(self,
                       owner: str,
                       title: Optional[str] = None,
                       session_id: Optional[str] = None) -> RecordingSession:
        """Create a session in the ``created`` state."""
        if not owner or not isinstance(owner, str):
            raise InvalidInputError("Session owner is required")
        if title is not None and not isinstance(title, str):
            raise InvalidInputError(f"Session title must be a string, got {title!r}")

        session_id = session_id or uuid.uuid4().hex
        # validates the id is usable as a storage key
        self.chunk_store.payloads.get_session_path(session_id)
        if self.repository.get_session(session_id) is not None:
            raise InvalidInputError(f"Session already exists: {session_id}")

        now = datetime.now(timezone.utc)
        session = self.repository.insert_session(RecordingSession(
            session_id=session_id,
            owner=owner,
            title=title or f"Recording - {now.strftime('%Y-%m-%d %H:%M')}",
            status=SessionStatus.CREATED,
            created_at=now,
        ))
        logger.info(f"Created new session: {session_id}")
        return session

    def get_session(self, session_id: str) -> RecordingSession:
        session = self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_sessions(self, owner: Optional[str] = None) -> List[RecordingSession]:
        return self.repository.list_sessions(owner)

    def start_session(self, session_id: str, actor: Optional[str] = None) -> RecordingSession:
        return self.lifecycle.apply(session_id, "start", actor=actor)

    def pause_session(self, session_id: str, actor: Optional[str] = None) -> RecordingSession:
        return self.lifecycle.apply(session_id, "pause", actor=actor)

    def resume_session(self, session_id: str, actor: Optional[str] = None) -> RecordingSession:
        return self.lifecycle.apply(session_id, "resume", actor=actor)

    def stop_session(self, session_id: str, actor: Optional[str] = None) -> RecordingSession:
        chunk_count = self.repository.count_chunks(session_id)
        return self.lifecycle.apply(session_id, "stop", actor=actor, metadata={"totalChunks": chunk_count})

    def begin_processing(self, session_id: str, actor: Optional[str] = None) -> RecordingSession:
        return self.lifecycle.apply(session_id, "process", actor=actor)

    def complete_session(self,
                         session_id: str,
                         summary: Dict[str, Any],
                         actor: Optional[str] = None) -> RecordingSession:
        """Store the summary and aggregated transcript and mark the session completed."""
        try:
            document = SummaryDocument.model_validate(summary)
        except ValidationError as e:
            raise InvalidInputError(f"Malformed summary document: {e}") from e

        aggregated = self.aggregator.aggregate(self.repository.list_chunks(session_id))
        return self.lifecycle.apply(
            session_id,
            "complete",
            actor=actor,
            metadata={"wordCount": aggregated.word_count, "speakers": aggregated.speakers},
            transcript=aggregated.full_text,
            summary=document.model_dump(by_alias=True, exclude_none=True),
        )

    def get_session_detail(self, session_id: str, page: int = 1, limit: Optional[int] = None) -> Dict[str, Any]:
        """Session fields, transcription progress, speaker metrics and one page of chunks."""
        limit = self.page_size if limit is None else limit
        if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
            raise InvalidInputError(f"Invalid page/limit: {page}/{limit}")

        session = self.get_session(session_id)
        total = self.repository.count_chunks(session_id)
        chunks = self.repository.list_chunks(session_id, offset=(page - 1) * limit, limit=limit)

        detail = session.to_dict()
        detail["progress"] = self.transcription_progress(session_id).to_dict()
        aggregated = self.aggregator.aggregate(self.repository.list_chunks(session_id))
        detail["diarization"] = aggregated.diarization.to_dict()
        detail["chunks"] = {
            "items": [chunk.to_dict() for chunk in chunks],
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        }
        return detail

    def wait_for_summary(self,
                         session_id: str,
                         interval: Optional[float] = None,
                         max_attempts: Optional[int] = None,
                         sleep: Callable[[float], None] = time.sleep) -> Optional[RecordingSession]:
        """Poll until the session has a summary.

        Returns:
            The session once its summary is present, or None when the
            attempts run out
        """
        interval = self.poll_interval if interval is None else interval
        max_attempts = self.poll_attempts if max_attempts is None else max_attempts

        for attempt in range(1, max_attempts + 1):
            session = self.get_session(session_id)
            if session.summary is not None:
                return session
            logger.debug(f"Summary for {session_id} not ready (attempt {attempt}/{max_attempts})")
            if attempt < max_attempts:
                sleep(interval)
        return None

    def delete_session(self, session_id: str) -> Dict[str, int]:
        self.get_session(session_id)
        return self._delete([session_id])

    def cleanup_sessions(self,
                         older_than_hours: Optional[float] = None,
                         owner: Optional[str] = None,
                         all_sessions: bool = False) -> Dict[str, int]:
        """Delete sessions matching exactly one criterion, dependents first."""
        criteria = [older_than_hours is not None, owner is not None, all_sessions]
        if sum(criteria) != 1:
            raise InvalidInputError("Specify exactly one of older_than_hours, owner or all_sessions")

        if older_than_hours is not None:
            cutoff = datetime.now(timezone.utc) - timedelta(hours=older_than_hours)
            session_ids = self.repository.find_session_ids(started_before=cutoff)
        elif owner is not None:
            session_ids = self.repository.find_session_ids(owner=owner)
        else:
            session_ids = self.repository.find_session_ids()

        logger.info(f"Cleaning up {len(session_ids)} sessions")
        return self._delete(session_ids)

    def _delete(self, session_ids: List[str]) -> Dict[str, int]:
        counts = self.repository.delete_sessions(session_ids)
        counts["payload_directories"] = sum(
            1 for session_id in session_ids if self.chunk_store.delete_session(session_id)
        )
        return counts

    # -- Chunks --

    def upload_chunk(self,
                     session_id: str,
                     seq: Union[int, str],
                     data: bytes,
                     duration_ms: Optional[int] = None,
                     actor: Optional[str] = None) -> Dict[str, Any]:
        """Store one chunk. Re-uploading a seq replaces the earlier payload.

        Returns:
            Dict with the payload path
        """
        seq = validate_seq(seq)
        session = self.get_session(session_id)
        self.lifecycle.ensure_accepts_uploads(session)

        ref = self.chunk_store.put(session_id, seq, data, duration_ms=duration_ms, accepting=UPLOAD_STATES)
        if ref is None:
            # state changed between the check above and the conditional insert
            self.lifecycle.ensure_accepts_uploads(self.get_session(session_id))
            raise InvalidStateError(session_id, None, "upload chunk to")

        self.event_log.append(
            session_id,
            EventType.CHUNK_UPLOAD,
            actor=actor,
            metadata={"seq": seq, "bytes": len(data), "durationMs": duration_ms},
        )
        return {"success": True, "path": ref}

    def get_chunk(self, session_id: str, seq: int) -> TranscriptChunk:
        chunk = self.repository.get_chunk(session_id, validate_seq(seq))
        if chunk is None:
            self.get_session(session_id)
            raise ChunkNotFoundError(session_id, seq)
        return chunk

    def record_transcription(self,
                             session_id: str,
                             seq: int,
                             text: str,
                             speaker: Optional[str] = None,
                             confidence: Optional[float] = None,
                             start_ms: Optional[int] = None,
                             end_ms: Optional[int] = None,
                             model: Optional[str] = None) -> TranscriptChunk:
        """Store the transcriber's result for a chunk and log its usage."""
        if not isinstance(text, str):
            raise InvalidInputError(f"Transcription text must be a string, got {text!r}")
        if speaker is not None and not isinstance(speaker, str):
            raise InvalidInputError(f"Speaker must be a string, got {speaker!r}")
        if confidence is not None:
            if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
                raise InvalidInputError(f"Confidence must be a number, got {confidence!r}")
            if not 0.0 <= confidence <= 1.0:
                raise InvalidInputError(f"Confidence must be between 0.0 and 1.0, got {confidence}")
        if (start_ms is None) != (end_ms is None):
            raise InvalidInputError("start_ms and end_ms must be given together")
        if start_ms is not None:
            if any(isinstance(value, bool) or not isinstance(value, int) for value in (start_ms, end_ms)):
                raise InvalidInputError(f"Chunk timing must be integer milliseconds, got {start_ms!r}..{end_ms!r}")
            if not 0 <= start_ms <= end_ms:
                raise InvalidInputError(f"Invalid chunk timing: {start_ms}..{end_ms}")
        if model is not None and not isinstance(model, str):
            raise InvalidInputError(f"Model must be a string, got {model!r}")

        chunk = self.get_chunk(session_id, seq)
        updated = self.repository.update_chunk_transcription(
            session_id, chunk.seq, text, speaker, confidence, start_ms, end_ms, datetime.now(timezone.utc)
        )
        if not updated:
            raise InvalidStateError(session_id, chunk.status.value, "record transcription for",
                                    f"chunk {chunk.seq} is already transcribed")

        self.event_log.append(
            session_id,
            EventType.TRANSCRIPTION_SUCCESS,
            metadata={"seq": chunk.seq, "confidence": confidence, "speaker": speaker},
        )

        duration_ms = chunk.duration_ms if chunk.duration_ms is not None else self.aggregator.nominal_chunk_ms
        self.usage.record_call(session_id, duration_ms / 1000, len(text), model=model)
        return self.get_chunk(session_id, chunk.seq)

    def record_transcription_failure(self,
                                     session_id: str,
                                     seq: int,
                                     failure: Union[UpstreamFailure, str]) -> TranscriptChunk:
        """Mark a chunk's transcription as failed. The session is not affected."""
        chunk = self.get_chunk(session_id, seq)
        if not self.repository.mark_chunk_failed(session_id, chunk.seq, datetime.now(timezone.utc)):
            raise InvalidStateError(session_id, chunk.status.value, "record transcription failure for",
                                    f"chunk {chunk.seq} is already transcribed")

        logger.warning(f"Transcription failed for chunk {chunk.seq} of session {session_id}: {failure}")
        self.event_log.append(
            session_id,
            EventType.TRANSCRIPTION_FAIL,
            metadata={"seq": chunk.seq, "error": str(failure)},
        )
        return self.get_chunk(session_id, chunk.seq)

    def flag_chunk(self, session_id: str, seq: int, flagged: bool = True,
                   note: Optional[str] = None) -> TranscriptChunk:
        """Set the review flag on a chunk, the one change allowed after transcription."""
        if not isinstance(flagged, bool):
            raise InvalidInputError(f"Flag must be a boolean, got {flagged!r}")
        if note is not None and not isinstance(note, str):
            raise InvalidInputError(f"Review note must be a string, got {note!r}")
        chunk = self.get_chunk(session_id, seq)
        self.repository.flag_chunk(session_id, chunk.seq, flagged, note, datetime.now(timezone.utc))
        return self.get_chunk(session_id, chunk.seq)

    def transcription_progress(self, session_id: str) -> TranscriptionProgress:
        counts = self.repository.chunk_status_counts(session_id)
        return TranscriptionProgress(
            total=sum(counts.values()),
            succeeded=counts.get("succeeded", 0),
            pending=counts.get("pending", 0),
            failed=counts.get("failed", 0),
        )

    # -- Reads --

    def missing_chunks(self, session_id: str) -> GapReport:
        self.get_session(session_id)
        report = detect_gaps(self.repository.list_sequences(session_id))
        if not report.complete:
            logger.warning(f"Session {session_id} is missing chunks: {report.missing}")
        return report

    def combined_audio(self, session_id: str) -> AssembledAudio:
        """Concatenate every readable chunk payload of the session."""
        self.get_session(session_id)
        chunks = self.chunk_store.list(session_id)
        return assemble_audio(
            session_id,
            chunks,
            lambda chunk: self.chunk_store.read(session_id, chunk.seq, chunk.ref),
        )

    def transcript(self, session_id: str) -> AggregatedTranscript:
        self.get_session(session_id)
        return self.aggregator.aggregate(self.repository.list_chunks(session_id))

    def transcript_document(self, session_id: str) -> TranscriptDocument:
        session = self.get_session(session_id)
        return self.aggregator.build_document(session, self.repository.list_chunks(session_id))

    def export(self,
               session_id: str,
               format_tag: str,
               text_options: Optional[TextExportOptions] = None) -> ExportResult:
        """Render the session transcript in the requested format."""
        export_format = ExportFormat.parse(format_tag)
        document = self.transcript_document(session_id)
        return ExportResult(
            content=render(document, export_format, text_options),
            export_format=export_format,
            filename=f"transcript-{session_id[:8]}.{export_format.value}",
        )

    def events(self,
               session_id: str,
               since: Optional[datetime] = None,
               until: Optional[datetime] = None) -> List[RecordingEvent]:
        self.get_session(session_id)
        return self.event_log.list(session_id, since=since, until=until)

    def cost_report(self,
                    granularity: str = "day",
                    since: Optional[datetime] = None,
                    until: Optional[datetime] = None) -> List[UsageBucket]:
        return self.usage.aggregate(granularity, since=since, until=until)
