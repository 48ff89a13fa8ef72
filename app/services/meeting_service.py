from sqlalchemy import func
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from app.core.errors import (
    InvalidStateError,
    MeetingNotFoundError,
    SessionNotFoundError,
)
from app.models.event import EventLog
from app.models.meeting import Meeting
from app.models.session import CandidateSession
from app.schemas.event import BehaviorSignal, EventRecord
from app.utils.enums import MeetingStatus


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_record(row: EventLog) -> EventRecord:
    return EventRecord(
        id=row.id,
        session_id=row.session_id,
        sequence=row.sequence,
        event_type=row.event_type,
        severity=row.severity,
        timestamp=row.timestamp,
        metadata=row.event_metadata,
    )


# Meetings

def create_meeting(
    db: Session,
    recruiter_name: str,
    coding_challenge: Optional[dict] = None,
) -> Meeting:
    meeting = Meeting(
        id=str(uuid4()),
        recruiter_name=recruiter_name,
        status=MeetingStatus.WAITING.value,
        coding_challenge=coding_challenge,
    )
    db.add(meeting)
    db.commit()
    db.refresh(meeting)
    return meeting


def get_meeting_by_id(db: Session, meeting_id: str) -> Optional[Meeting]:
    return db.query(Meeting).filter_by(id=meeting_id).first()


def update_meeting_status(db: Session, meeting_id: str, status: MeetingStatus) -> Meeting:
    meeting = get_meeting_by_id(db, meeting_id)
    if not meeting:
        raise MeetingNotFoundError(meeting_id)

    current = MeetingStatus(meeting.status)
    if current == MeetingStatus.ENDED and status != MeetingStatus.ENDED:
        raise InvalidStateError("Meeting has already ended")

    meeting.status = status.value
    db.commit()
    db.refresh(meeting)
    return meeting


# Candidate sessions

def create_session(db: Session, meeting_id: str, candidate_name: str) -> CandidateSession:
    meeting = get_meeting_by_id(db, meeting_id)
    if not meeting:
        raise MeetingNotFoundError(meeting_id)

    if meeting.status == MeetingStatus.ENDED.value:
        raise InvalidStateError("Meeting has already ended")

    active = (
        db.query(CandidateSession)
        .filter(CandidateSession.meeting_id == meeting_id)
        .filter(CandidateSession.ended_at.is_(None))
        .first()
    )
    if active:
        raise InvalidStateError("Meeting already has an active candidate session")

    session = CandidateSession(
        id=str(uuid4()),
        meeting_id=meeting_id,
        candidate_name=candidate_name,
        authenticity_score=100,
    )
    db.add(session)

    # First candidate join activates the meeting
    if meeting.status == MeetingStatus.WAITING.value:
        meeting.status = MeetingStatus.ACTIVE.value

    db.commit()
    db.refresh(session)
    return session


def get_session_by_id(db: Session, session_id: str) -> Optional[CandidateSession]:
    return db.query(CandidateSession).filter_by(id=session_id).first()


def get_session_by_meeting(db: Session, meeting_id: str) -> Optional[CandidateSession]:
    return (
        db.query(CandidateSession)
        .filter(CandidateSession.meeting_id == meeting_id)
        .order_by(CandidateSession.started_at.desc())
        .first()
    )


def update_session_score(db: Session, session_id: str, score: int) -> CandidateSession:
    session = get_session_by_id(db, session_id)
    if not session:
        raise SessionNotFoundError(session_id)

    session.authenticity_score = score
    db.commit()
    db.refresh(session)
    return session


def end_session(db: Session, session_id: str, final_score: int) -> CandidateSession:
    session = get_session_by_id(db, session_id)
    if not session:
        raise SessionNotFoundError(session_id)

    if session.ended_at is not None:
        raise InvalidStateError("Session has already ended")

    session.ended_at = datetime.utcnow()
    session.authenticity_score = final_score
    db.commit()
    db.refresh(session)
    return session


# Event log

def create_event_log(db: Session, session_id: str, signal: BehaviorSignal) -> EventRecord:
    last_sequence = (
        db.query(func.max(EventLog.sequence))
        .filter(EventLog.session_id == session_id)
        .scalar()
    )

    row = EventLog(
        id=str(uuid4()),
        session_id=session_id,
        sequence=(last_sequence or 0) + 1,
        event_type=signal.event_type,
        severity=signal.severity.value,
        event_metadata=signal.metadata,
        timestamp=_naive_utc(signal.timestamp),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return to_record(row)


def get_events_by_session(db: Session, session_id: str) -> list[EventRecord]:
    rows = (
        db.query(EventLog)
        .filter(EventLog.session_id == session_id)
        .order_by(EventLog.sequence.asc())
        .all()
    )
    return [to_record(row) for row in rows]


def get_meeting_dashboard(db: Session, meeting_id: str) -> Optional[dict]:
    meeting = get_meeting_by_id(db, meeting_id)
    if not meeting:
        return None

    session = get_session_by_meeting(db, meeting_id)
    events = get_events_by_session(db, session.id) if session else []
    return {"meeting": meeting, "session": session, "events": events}
