"""Session lifecycle state machine."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional

from ..errors import InvalidInputError, InvalidStateError, SessionNotFoundError
from ..models import EventType, RecordingSession, SessionStatus
from ..storage import SessionRepository
from .event_log import EventLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    action: str
    from_states: FrozenSet[SessionStatus]
    to_state: SessionStatus
    event_type: EventType


TRANSITIONS: Dict[str, Transition] = {
    "start": Transition("start", frozenset({SessionStatus.CREATED}),
                        SessionStatus.RECORDING, EventType.START),
    "pause": Transition("pause", frozenset({SessionStatus.RECORDING}),
                        SessionStatus.PAUSED, EventType.PAUSE),
    "resume": Transition("resume", frozenset({SessionStatus.PAUSED}),
                         SessionStatus.RECORDING, EventType.RESUME),
    "stop": Transition("stop", frozenset({SessionStatus.RECORDING, SessionStatus.PAUSED}),
                       SessionStatus.STOPPED, EventType.STOP),
    "process": Transition("process", frozenset({SessionStatus.STOPPED}),
                          SessionStatus.PROCESSING, EventType.PROCESS),
    "complete": Transition("complete", frozenset({SessionStatus.PROCESSING}),
                           SessionStatus.COMPLETED, EventType.COMPLETE),
}

# States in which chunk uploads are accepted.
UPLOAD_STATES: FrozenSet[SessionStatus] = frozenset({SessionStatus.RECORDING, SessionStatus.PAUSED})


def allowed_actions(status: SessionStatus) -> List[str]:
    """Transitions that may be requested from ``status``."""
    return [name for name, transition in TRANSITIONS.items() if status in transition.from_states]


class SessionLifecycle:
    """Validates and applies session transitions.

    Each transition is a single conditional update on the session row, so
    two competing requests cannot both succeed, and applying the same
    transition twice is rejected the second time. One RecordingEvent is
    emitted per accepted transition.
    """

    def __init__(self, repository: SessionRepository, event_log: EventLog):
        self.repository = repository
        self.event_log = event_log

    def apply(self,
              session_id: str,
              action: str,
              actor: Optional[str] = None,
              metadata: Optional[Dict[str, Any]] = None,
              **fields: Any) -> RecordingSession:
        """Apply the named transition.

        Raises:
            InvalidInputError: unknown action
            SessionNotFoundError: session does not exist
            InvalidStateError: transition not legal from the current state
        """
        transition = TRANSITIONS.get(action)
        if transition is None:
            raise InvalidInputError(f"Unknown session action: {action}")

        now = datetime.now(timezone.utc)
        if action == "start":
            fields.setdefault("started_at", now)
        if transition.to_state == SessionStatus.STOPPED:
            fields.setdefault("ended_at", now)

        if not self.repository.transition_status(session_id, transition.from_states, transition.to_state, **fields):
            session = self.repository.get_session(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            raise InvalidStateError(session_id, session.status.value, action)

        event_metadata = {"status": transition.to_state.value}
        event_metadata.update(metadata or {})
        self.event_log.append(session_id, transition.event_type, actor=actor, metadata=event_metadata)

        logger.info(f"Session {session_id}: {action} -> {transition.to_state.value}")
        return self.repository.get_session(session_id)

    def ensure_accepts_uploads(self, session: RecordingSession) -> None:
        if session.status not in UPLOAD_STATES:
            raise InvalidStateError(session.session_id, session.status.value, "upload chunk to")
