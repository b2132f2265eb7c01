"""SQLite persistence for sessions, chunks, events and usage records."""

import json
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Iterable, List, Optional, Sequence

from ..models import (
    ChunkStatus,
    EventType,
    RecordingEvent,
    RecordingSession,
    SessionStatus,
    TranscriptChunk,
    UsageRecord,
)

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS sessions (
    id              TEXT PRIMARY KEY,
    owner           TEXT NOT NULL,
    title           TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'created',
    created_at      TEXT NOT NULL,
    started_at      TEXT,
    ended_at        TEXT,
    transcript      TEXT,
    summary_json    TEXT
);

CREATE TABLE IF NOT EXISTS chunks (
    session_id      TEXT NOT NULL REFERENCES sessions(id),
    seq             INTEGER NOT NULL CHECK (seq >= 0),
    audio_ref       TEXT NOT NULL,
    duration_ms     INTEGER,
    text            TEXT,
    speaker         TEXT,
    confidence      REAL,
    status          TEXT NOT NULL DEFAULT 'pending',
    start_ms        INTEGER,
    end_ms          INTEGER,
    flagged         INTEGER NOT NULL DEFAULT 0,
    review_note     TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    PRIMARY KEY (session_id, seq)
);

CREATE TABLE IF NOT EXISTS events (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id      TEXT NOT NULL REFERENCES sessions(id),
    type            TEXT NOT NULL,
    actor           TEXT,
    metadata_json   TEXT NOT NULL DEFAULT '{}',
    created_at      TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_session_time ON events (session_id, created_at);

CREATE TABLE IF NOT EXISTS usage_records (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id          TEXT NOT NULL REFERENCES sessions(id),
    audio_seconds       REAL NOT NULL,
    output_chars        INTEGER NOT NULL,
    input_tokens        INTEGER NOT NULL,
    output_tokens       INTEGER NOT NULL,
    estimated_cost_usd  REAL NOT NULL,
    model               TEXT NOT NULL,
    recorded_at         TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_usage_time ON usage_records (recorded_at);
"""


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


class SessionRepository:
    """Relational store for the session aggregate.

    Connections are per thread. Every status change and every chunk insert
    is a single conditional statement, so legality checks and writes cannot
    interleave with a competing writer.
    """

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._init_schema()
        logger.info(f"SessionRepository initialized with database: {self.db_path}")

    def _get_conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(str(self.db_path), timeout=30)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            self._local.conn = conn
        return conn

    def _init_schema(self) -> None:
        conn = self._get_conn()
        conn.executescript(SCHEMA_SQL)
        conn.commit()

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        conn = self._get_conn()
        with conn:
            return conn.execute(sql, params)

    def fetchone(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        return self._get_conn().execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        return self._get_conn().execute(sql, params).fetchall()

    # -- Sessions --

    def insert_session(self, session: RecordingSession) -> RecordingSession:
        self.execute(
            "INSERT INTO sessions (id, owner, title, status, created_at, started_at, ended_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                session.session_id,
                session.owner,
                session.title,
                session.status.value,
                _ts(session.created_at),
                _ts(session.started_at),
                _ts(session.ended_at),
            ),
        )
        return self.get_session(session.session_id)

    def get_session(self, session_id: str) -> Optional[RecordingSession]:
        row = self.fetchone("SELECT * FROM sessions WHERE id = ?", (session_id,))
        return self._row_to_session(row) if row else None

    def list_sessions(self, owner: Optional[str] = None) -> List[RecordingSession]:
        if owner is None:
            rows = self.fetchall("SELECT * FROM sessions ORDER BY created_at DESC")
        else:
            rows = self.fetchall(
                "SELECT * FROM sessions WHERE owner = ? ORDER BY created_at DESC", (owner,)
            )
        return [self._row_to_session(row) for row in rows]

    def transition_status(self,
                          session_id: str,
                          from_statuses: Iterable[SessionStatus],
                          to_status: SessionStatus,
                          **fields: Any) -> bool:
        """Move a session to ``to_status`` only if it is currently in ``from_statuses``.

        Extra keyword fields (started_at, ended_at, transcript, summary) are
        written in the same statement.

        Returns:
            True if the row was updated
        """
        allowed = [status.value for status in from_statuses]
        columns = {"status": to_status.value}
        for key, value in fields.items():
            if key == "summary":
                columns["summary_json"] = json.dumps(value) if value is not None else None
            elif isinstance(value, datetime):
                columns[key] = _ts(value)
            else:
                columns[key] = value

        set_clause = ", ".join(f"{column} = ?" for column in columns)
        cursor = self.execute(
            f"UPDATE sessions SET {set_clause} WHERE id = ? AND status IN ({_placeholders(allowed)})",
            tuple(columns.values()) + (session_id,) + tuple(allowed),
        )
        return cursor.rowcount == 1

    def find_session_ids(self,
                         started_before: Optional[datetime] = None,
                         owner: Optional[str] = None) -> List[str]:
        clauses = []
        params: List[Any] = []
        if started_before is not None:
            clauses.append("COALESCE(started_at, created_at) < ?")
            params.append(_ts(started_before))
        if owner is not None:
            clauses.append("owner = ?")
            params.append(owner)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.fetchall(f"SELECT id FROM sessions{where} ORDER BY created_at", tuple(params))
        return [row["id"] for row in rows]

    def delete_sessions(self, session_ids: Sequence[str]) -> Dict[str, int]:
        """Delete sessions together with their chunks, events and usage records.

        Dependents are removed before the session rows, in one transaction.
        """
        counts = {"chunks": 0, "events": 0, "usage": 0, "sessions": 0}
        if not session_ids:
            return counts

        ids = tuple(session_ids)
        marks = _placeholders(ids)
        conn = self._get_conn()
        with conn:
            counts["chunks"] = conn.execute(f"DELETE FROM chunks WHERE session_id IN ({marks})", ids).rowcount
            counts["events"] = conn.execute(f"DELETE FROM events WHERE session_id IN ({marks})", ids).rowcount
            counts["usage"] = conn.execute(f"DELETE FROM usage_records WHERE session_id IN ({marks})", ids).rowcount
            counts["sessions"] = conn.execute(f"DELETE FROM sessions WHERE id IN ({marks})", ids).rowcount

        logger.info(
            f"Deleted {counts['sessions']} sessions, {counts['chunks']} chunks, "
            f"{counts['events']} events, {counts['usage']} usage records"
        )
        return counts

    # -- Chunks --

    def upsert_chunk(self, chunk: TranscriptChunk, allowed_statuses: Iterable[SessionStatus]) -> bool:
        """Insert or refresh a chunk record if the session accepts uploads.

        A repeated (session_id, seq) replaces the payload reference and
        duration only; transcription fields are kept.

        Returns:
            False if the session is missing or not in ``allowed_statuses``
        """
        allowed = [status.value for status in allowed_statuses]
        now = _ts(chunk.created_at)
        cursor = self.execute(
            "INSERT INTO chunks (session_id, seq, audio_ref, duration_ms, status, created_at, updated_at) "
            "SELECT ?, ?, ?, ?, ?, ?, ? "
            f"WHERE EXISTS (SELECT 1 FROM sessions WHERE id = ? AND status IN ({_placeholders(allowed)})) "
            "ON CONFLICT (session_id, seq) DO UPDATE SET "
            "audio_ref = excluded.audio_ref, "
            "duration_ms = COALESCE(excluded.duration_ms, chunks.duration_ms), "
            "updated_at = excluded.updated_at",
            (
                chunk.session_id,
                chunk.seq,
                chunk.audio_ref,
                chunk.duration_ms,
                chunk.status.value,
                now,
                now,
                chunk.session_id,
            ) + tuple(allowed),
        )
        return cursor.rowcount > 0

    def get_chunk(self, session_id: str, seq: int) -> Optional[TranscriptChunk]:
        row = self.fetchone("SELECT * FROM chunks WHERE session_id = ? AND seq = ?", (session_id, seq))
        return self._row_to_chunk(row) if row else None

    def list_chunks(self,
                    session_id: str,
                    offset: int = 0,
                    limit: Optional[int] = None) -> List[TranscriptChunk]:
        """Chunks of a session in ascending seq order, fetched in one query."""
        sql = "SELECT * FROM chunks WHERE session_id = ? ORDER BY seq ASC"
        params: tuple = (session_id,)
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params += (limit, offset)
        return [self._row_to_chunk(row) for row in self.fetchall(sql, params)]

    def list_sequences(self, session_id: str) -> List[int]:
        rows = self.fetchall("SELECT seq FROM chunks WHERE session_id = ? ORDER BY seq ASC", (session_id,))
        return [row["seq"] for row in rows]

    def count_chunks(self, session_id: str) -> int:
        row = self.fetchone("SELECT COUNT(*) AS n FROM chunks WHERE session_id = ?", (session_id,))
        return row["n"]

    def chunk_status_counts(self, session_id: str) -> Dict[str, int]:
        rows = self.fetchall(
            "SELECT status, COUNT(*) AS n FROM chunks WHERE session_id = ? GROUP BY status", (session_id,)
        )
        return {row["status"]: row["n"] for row in rows}

    def update_chunk_transcription(self,
                                   session_id: str,
                                   seq: int,
                                   text: str,
                                   speaker: Optional[str],
                                   confidence: Optional[float],
                                   start_ms: Optional[int],
                                   end_ms: Optional[int],
                                   updated_at: datetime) -> bool:
        """Store a transcription result unless the chunk is already transcribed."""
        cursor = self.execute(
            "UPDATE chunks SET text = ?, speaker = ?, confidence = ?, start_ms = ?, end_ms = ?, "
            "status = ?, updated_at = ? "
            "WHERE session_id = ? AND seq = ? AND status IN (?, ?)",
            (
                text,
                speaker,
                confidence,
                start_ms,
                end_ms,
                ChunkStatus.SUCCEEDED.value,
                _ts(updated_at),
                session_id,
                seq,
                ChunkStatus.PENDING.value,
                ChunkStatus.FAILED.value,
            ),
        )
        return cursor.rowcount == 1

    def mark_chunk_failed(self, session_id: str, seq: int, updated_at: datetime) -> bool:
        cursor = self.execute(
            "UPDATE chunks SET status = ?, updated_at = ? "
            "WHERE session_id = ? AND seq = ? AND status IN (?, ?)",
            (
                ChunkStatus.FAILED.value,
                _ts(updated_at),
                session_id,
                seq,
                ChunkStatus.PENDING.value,
                ChunkStatus.FAILED.value,
            ),
        )
        return cursor.rowcount == 1

    def flag_chunk(self, session_id: str, seq: int, flagged: bool,
                   note: Optional[str], updated_at: datetime) -> bool:
        cursor = self.execute(
            "UPDATE chunks SET flagged = ?, review_note = ?, updated_at = ? WHERE session_id = ? AND seq = ?",
            (1 if flagged else 0, note, _ts(updated_at), session_id, seq),
        )
        return cursor.rowcount == 1

    # -- Events --

    def append_event(self, event: RecordingEvent) -> RecordingEvent:
        cursor = self.execute(
            "INSERT INTO events (session_id, type, actor, metadata_json, created_at) VALUES (?, ?, ?, ?, ?)",
            (
                event.session_id,
                event.event_type.value,
                event.actor,
                json.dumps(event.metadata or {}),
                _ts(event.timestamp),
            ),
        )
        return RecordingEvent(
            session_id=event.session_id,
            event_type=event.event_type,
            timestamp=event.timestamp,
            actor=event.actor,
            metadata=dict(event.metadata or {}),
            event_id=cursor.lastrowid,
        )

    def list_events(self,
                    session_id: str,
                    since: Optional[datetime] = None,
                    until: Optional[datetime] = None) -> List[RecordingEvent]:
        sql = "SELECT * FROM events WHERE session_id = ?"
        params: List[Any] = [session_id]
        if since is not None:
            sql += " AND created_at >= ?"
            params.append(_ts(since))
        if until is not None:
            sql += " AND created_at <= ?"
            params.append(_ts(until))
        sql += " ORDER BY created_at ASC, id ASC"
        return [self._row_to_event(row) for row in self.fetchall(sql, tuple(params))]

    # -- Usage --

    def append_usage(self, record: UsageRecord) -> None:
        self.execute(
            "INSERT INTO usage_records (session_id, audio_seconds, output_chars, input_tokens, "
            "output_tokens, estimated_cost_usd, model, recorded_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.session_id,
                record.audio_seconds,
                record.output_chars,
                record.input_tokens,
                record.output_tokens,
                record.estimated_cost_usd,
                record.model,
                _ts(record.recorded_at),
            ),
        )

    def list_usage(self,
                   since: Optional[datetime] = None,
                   until: Optional[datetime] = None,
                   session_id: Optional[str] = None) -> List[UsageRecord]:
        clauses = []
        params: List[Any] = []
        if session_id is not None:
            clauses.append("session_id = ?")
            params.append(session_id)
        if since is not None:
            clauses.append("recorded_at >= ?")
            params.append(_ts(since))
        if until is not None:
            clauses.append("recorded_at <= ?")
            params.append(_ts(until))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.fetchall(f"SELECT * FROM usage_records{where} ORDER BY recorded_at ASC, id ASC", tuple(params))
        return [
            UsageRecord(
                session_id=row["session_id"],
                audio_seconds=row["audio_seconds"],
                output_chars=row["output_chars"],
                input_tokens=row["input_tokens"],
                output_tokens=row["output_tokens"],
                estimated_cost_usd=row["estimated_cost_usd"],
                model=row["model"],
                recorded_at=_dt(row["recorded_at"]),
            )
            for row in rows
        ]

    # -- Row mapping --

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> RecordingSession:
        return RecordingSession(
            session_id=row["id"],
            owner=row["owner"],
            title=row["title"],
            status=SessionStatus(row["status"]),
            created_at=_dt(row["created_at"]),
            started_at=_dt(row["started_at"]),
            ended_at=_dt(row["ended_at"]),
            transcript=row["transcript"],
            summary=json.loads(row["summary_json"]) if row["summary_json"] else None,
        )

    @staticmethod
    def _row_to_chunk(row: sqlite3.Row) -> TranscriptChunk:
        return TranscriptChunk(
            session_id=row["session_id"],
            seq=row["seq"],
            audio_ref=row["audio_ref"],
            created_at=_dt(row["created_at"]),
            duration_ms=row["duration_ms"],
            text=row["text"],
            speaker=row["speaker"],
            confidence=row["confidence"],
            status=ChunkStatus(row["status"]),
            start_ms=row["start_ms"],
            end_ms=row["end_ms"],
            flagged=bool(row["flagged"]),
            review_note=row["review_note"],
        )

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> RecordingEvent:
        return RecordingEvent(
            session_id=row["session_id"],
            event_type=EventType(row["type"]),
            timestamp=_dt(row["created_at"]),
            actor=row["actor"],
            metadata=json.loads(row["metadata_json"] or "{}"),
            event_id=row["id"],
        )
