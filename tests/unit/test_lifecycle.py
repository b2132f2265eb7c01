"""Unit tests for the session lifecycle state machine."""

import pytest
from pubsub import pub

from chunkscribe.errors import InvalidInputError, InvalidStateError, SessionNotFoundError
from chunkscribe.models import EventType, SessionStatus
from chunkscribe.services import EVENTS_TOPIC, EventLog, SessionLifecycle, allowed_actions


@pytest.fixture
def lifecycle(repository):
    return SessionLifecycle(repository, EventLog(repository))


@pytest.fixture
def created_session(service):
    return service.create_session(owner="alice", session_id="sess-1")


@pytest.mark.unit
class TestSessionLifecycle:
    """Test cases for SessionLifecycle."""

    def test_full_lifecycle(self, lifecycle, created_session):
        session_id = created_session.session_id
        assert created_session.status == SessionStatus.CREATED

        for action, expected in [
            ("start", SessionStatus.RECORDING),
            ("pause", SessionStatus.PAUSED),
            ("resume", SessionStatus.RECORDING),
            ("stop", SessionStatus.STOPPED),
            ("process", SessionStatus.PROCESSING),
            ("complete", SessionStatus.COMPLETED),
        ]:
            assert lifecycle.apply(session_id, action).status == expected

    def test_start_and_stop_set_timestamps(self, lifecycle, created_session):
        started = lifecycle.apply(created_session.session_id, "start")
        assert started.started_at is not None
        assert started.ended_at is None

        stopped = lifecycle.apply(created_session.session_id, "stop")
        assert stopped.ended_at is not None
        assert stopped.ended_at >= stopped.started_at

    def test_stop_from_paused(self, lifecycle, created_session):
        lifecycle.apply(created_session.session_id, "start")
        lifecycle.apply(created_session.session_id, "pause")

        assert lifecycle.apply(created_session.session_id, "stop").status == SessionStatus.STOPPED

    def test_reapplying_transition_is_rejected(self, lifecycle, repository, created_session):
        lifecycle.apply(created_session.session_id, "start")
        lifecycle.apply(created_session.session_id, "pause")

        with pytest.raises(InvalidStateError) as exc_info:
            lifecycle.apply(created_session.session_id, "pause")

        assert exc_info.value.status == "paused"
        assert exc_info.value.operation == "pause"
        pauses = [e for e in repository.list_events("sess-1") if e.event_type == EventType.PAUSE]
        assert len(pauses) == 1

    @pytest.mark.parametrize("action", ["pause", "resume", "stop", "process", "complete"])
    def test_illegal_from_created(self, lifecycle, repository, created_session, action):
        with pytest.raises(InvalidStateError):
            lifecycle.apply(created_session.session_id, action)

        assert repository.get_session("sess-1").status == SessionStatus.CREATED
        assert repository.list_events("sess-1") == []

    def test_completed_is_terminal(self, lifecycle, created_session):
        for action in ["start", "stop", "process", "complete"]:
            lifecycle.apply(created_session.session_id, action)

        assert allowed_actions(SessionStatus.COMPLETED) == []
        with pytest.raises(InvalidStateError):
            lifecycle.apply(created_session.session_id, "start")

    def test_one_event_per_transition(self, lifecycle, repository, created_session):
        lifecycle.apply(created_session.session_id, "start", actor="alice")
        lifecycle.apply(created_session.session_id, "stop", actor="alice", metadata={"totalChunks": 0})

        events = repository.list_events("sess-1")
        assert [event.event_type for event in events] == [EventType.START, EventType.STOP]
        assert events[0].actor == "alice"
        assert events[0].metadata == {"status": "recording"}
        assert events[1].metadata == {"status": "stopped", "totalChunks": 0}

    def test_events_are_published(self, lifecycle, created_session):
        received = []

        def listener(event):
            received.append(event)

        pub.subscribe(listener, EVENTS_TOPIC)
        try:
            lifecycle.apply(created_session.session_id, "start")
        finally:
            pub.unsubscribe(listener, EVENTS_TOPIC)

        assert len(received) == 1
        assert received[0].event_type == EventType.START
        assert received[0].event_id is not None

    def test_unknown_session(self, lifecycle):
        with pytest.raises(SessionNotFoundError):
            lifecycle.apply("nope", "start")

    def test_unknown_action(self, lifecycle, created_session):
        with pytest.raises(InvalidInputError):
            lifecycle.apply(created_session.session_id, "rewind")

    def test_allowed_actions(self):
        assert allowed_actions(SessionStatus.CREATED) == ["start"]
        assert allowed_actions(SessionStatus.RECORDING) == ["pause", "stop"]
        assert allowed_actions(SessionStatus.PAUSED) == ["resume", "stop"]
