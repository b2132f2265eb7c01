"""Append-only session event log with in-process publication."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pubsub import pub

from ..models import EventType, RecordingEvent
from ..storage import SessionRepository

logger = logging.getLogger(__name__)

EVENTS_TOPIC = "session.events"


class EventLog:
    """Persists RecordingEvents and publishes each one on a pub/sub topic."""

    def __init__(self, repository: SessionRepository, topic: str = EVENTS_TOPIC):
        """Initialize event log.

        Args:
            repository: Store the events are appended to
            topic: Pub/sub topic name for published events
        """
        self.repository = repository
        self.topic = topic
        logger.info(f"EventLog initialized with topic: {topic}")

    def append(self,
               session_id: str,
               event_type: EventType,
               actor: Optional[str] = None,
               metadata: Optional[Dict[str, Any]] = None) -> RecordingEvent:
        """Record an event and publish it to listeners of ``self.topic``."""
        event = self.repository.append_event(RecordingEvent(
            session_id=session_id,
            event_type=event_type,
            timestamp=datetime.now(timezone.utc),
            actor=actor,
            metadata=dict(metadata or {}),
        ))
        pub.sendMessage(self.topic, event=event)
        logger.debug(f"Logged {event_type.value} event for session {session_id}")
        return event

    def list(self,
             session_id: str,
             since: Optional[datetime] = None,
             until: Optional[datetime] = None) -> List[RecordingEvent]:
        return self.repository.list_events(session_id, since=since, until=until)
