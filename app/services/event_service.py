import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import SessionClosedError, SessionNotFoundError
from app.schemas.event import BehaviorSignal, CheatAlert, EventRecord, ScoreUpdate
from app.services import meeting_service
from app.services.alert_classifier import build_alert
from app.services.risk_engine import calculate_score, evaluate_event
from app.utils.enums import MeetingStatus, SeverityLevel

logger = logging.getLogger(__name__)

WARNING_SEVERITIES = {SeverityLevel.HIGH, SeverityLevel.CRITICAL}


@dataclass
class SignalOutcome:
    meeting_id: str
    record: EventRecord
    score: ScoreUpdate
    alert: Optional[CheatAlert] = None
    warning: Optional[str] = None


def submit_signal(db: Session, session_id: str, signal: BehaviorSignal) -> SignalOutcome:
    """
    Accept a behavior signal into a session's history and rescore the session.

    The score is recomputed from the full stored history every time, so the
    result is the same however many times the history is replayed.
    """
    session = meeting_service.get_session_by_id(db, session_id)
    if not session:
        raise SessionNotFoundError(session_id)

    if session.ended_at is not None:
        raise SessionClosedError(session_id)

    # 1. Persist
    record = meeting_service.create_event_log(db, session_id, signal)

    # 2. Recalculate from the whole history
    history = meeting_service.get_events_by_session(db, session_id)
    new_score = calculate_score(history)

    # 3. Persist latest score
    meeting_service.update_session_score(db, session_id, new_score)

    outcome = SignalOutcome(
        meeting_id=session.meeting_id,
        record=record,
        score=ScoreUpdate(
            authenticity_score=new_score,
            suspicion_delta=evaluate_event(signal.event_type),
            total_events=len(history),
        ),
        alert=build_alert(record),
    )

    if signal.severity in WARNING_SEVERITIES:
        outcome.warning = f"Warning: Suspicious behavior detected ({signal.event_type})"

    logger.info(
        "Accepted %s (%s) for session %s, score=%d",
        signal.event_type, signal.severity.value, session_id, new_score,
    )
    return outcome


def finish_session(db: Session, session_id: str) -> int:
    """Freeze the session score and end its meeting. Returns the final score."""
    session = meeting_service.get_session_by_id(db, session_id)
    if not session:
        raise SessionNotFoundError(session_id)

    if session.ended_at is not None:
        raise SessionClosedError(session_id)

    final_score = calculate_score(meeting_service.get_events_by_session(db, session_id))
    session = meeting_service.end_session(db, session_id, final_score)
    meeting_service.update_meeting_status(db, session.meeting_id, MeetingStatus.ENDED)

    logger.info("Session ended: %s, final score: %d", session_id, final_score)
    return final_score
