"""
Tests for signal acceptance and the meeting/session lifecycle
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import (
    InvalidStateError,
    MeetingNotFoundError,
    SessionClosedError,
    SessionNotFoundError,
)
from app.schemas.event import BehaviorSignal
from app.services import meeting_service
from app.services.event_service import finish_session, submit_signal
from app.utils.enums import MeetingStatus


def signal(event_type, severity="low", metadata=None, at=None):
    return BehaviorSignal(
        event_type=event_type,
        severity=severity,
        timestamp=at or datetime.now(timezone.utc),
        metadata=metadata,
    )


class TestMeetingLifecycle:

    def test_join_activates_meeting(self, db, meeting):
        assert meeting.status == "waiting"

        meeting_service.create_session(db, meeting.id, "Arjun")

        assert meeting_service.get_meeting_by_id(db, meeting.id).status == "active"

    def test_unknown_meeting(self, db):
        with pytest.raises(MeetingNotFoundError):
            meeting_service.create_session(db, "missing", "Arjun")

    def test_one_active_session_per_meeting(self, db, meeting, candidate_session):
        with pytest.raises(InvalidStateError):
            meeting_service.create_session(db, meeting.id, "Someone else")

    def test_ended_meeting_cannot_be_joined_or_reopened(self, db, meeting, candidate_session):
        finish_session(db, candidate_session.id)

        with pytest.raises(InvalidStateError):
            meeting_service.create_session(db, meeting.id, "Late")
        with pytest.raises(InvalidStateError):
            meeting_service.update_meeting_status(db, meeting.id, MeetingStatus.ACTIVE)


class TestSubmitSignal:
    """Accept, persist, rescore"""

    def test_accepts_and_rescores(self, db, candidate_session):
        outcome = submit_signal(db, candidate_session.id, signal("tab_switch", "high"))

        assert outcome.record.sequence == 1
        assert outcome.score.authenticity_score == 90
        assert outcome.score.suspicion_delta == 10
        assert outcome.score.total_events == 1
        assert meeting_service.get_session_by_id(db, candidate_session.id).authenticity_score == 90

    def test_warning_only_for_high_severity(self, db, candidate_session):
        quiet = submit_signal(db, candidate_session.id, signal("window_blur", "medium"))
        loud = submit_signal(db, candidate_session.id, signal("tab_switch", "high"))

        assert quiet.warning is None
        assert loud.warning == "Warning: Suspicious behavior detected (tab_switch)"

    def test_alert_for_critical_cheat(self, db, candidate_session):
        outcome = submit_signal(
            db, candidate_session.id, signal("code_paste", "critical", {"code_snapshot": "print(1)"})
        )

        assert outcome.alert.id == f"alert_{outcome.record.id}"
        assert outcome.alert.code_snapshot == "print(1)"

    def test_unknown_type_is_stored_but_weightless(self, db, candidate_session):
        outcome = submit_signal(db, candidate_session.id, signal("mouse_wiggle", "low"))

        assert outcome.score.authenticity_score == 100
        assert outcome.score.suspicion_delta == 0
        assert len(meeting_service.get_events_by_session(db, candidate_session.id)) == 1

    def test_history_keeps_arrival_order(self, db, candidate_session):
        now = datetime.now(timezone.utc)
        submit_signal(db, candidate_session.id, signal("tab_switch", at=now))
        submit_signal(db, candidate_session.id, signal("window_blur", at=now - timedelta(minutes=5)))

        history = meeting_service.get_events_by_session(db, candidate_session.id)

        assert [e.event_type for e in history] == ["tab_switch", "window_blur"]
        assert [e.sequence for e in history] == [1, 2]

    def test_switch_then_focus_are_two_records(self, db, candidate_session):
        submit_signal(db, candidate_session.id, signal("tab_switch", "high"))
        submit_signal(db, candidate_session.id, signal("window_focus", "low"))

        history = meeting_service.get_events_by_session(db, candidate_session.id)

        assert [e.event_type for e in history] == ["tab_switch", "window_focus"]
        assert history[0].id != history[1].id

    def test_duplicates_are_separate_events(self, db, candidate_session):
        duplicate = signal("window_blur", "medium")
        for _ in range(3):
            outcome = submit_signal(db, candidate_session.id, duplicate)

        assert outcome.score.authenticity_score == 61
        assert outcome.score.total_events == 3

    def test_unknown_session(self, db):
        with pytest.raises(SessionNotFoundError):
            submit_signal(db, "missing", signal("tab_switch"))

    def test_ended_session_rejects_signals(self, db, candidate_session):
        submit_signal(db, candidate_session.id, signal("tab_switch", "high"))
        finish_session(db, candidate_session.id)

        with pytest.raises(SessionClosedError):
            submit_signal(db, candidate_session.id, signal("code_paste", "critical"))

        assert len(meeting_service.get_events_by_session(db, candidate_session.id)) == 1
        assert meeting_service.get_session_by_id(db, candidate_session.id).authenticity_score == 90


class TestFinishSession:

    def test_freezes_score_and_ends_meeting(self, db, meeting, candidate_session):
        submit_signal(db, candidate_session.id, signal("devtools_open", "critical"))

        final_score = finish_session(db, candidate_session.id)

        session = meeting_service.get_session_by_id(db, candidate_session.id)
        assert final_score == 65
        assert session.ended_at is not None
        assert session.authenticity_score == 65
        assert meeting_service.get_meeting_by_id(db, meeting.id).status == "ended"

    def test_ending_twice(self, db, candidate_session):
        finish_session(db, candidate_session.id)
        with pytest.raises(SessionClosedError):
            finish_session(db, candidate_session.id)
