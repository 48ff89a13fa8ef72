from typing import Iterable, Optional

from app.schemas.event import CheatAlert, EventRecord
from app.services.risk_config import ALERT_ALWAYS_EVENTS
from app.utils.enums import EventType, SeverityLevel

SNAPSHOT_LIMIT = 300

ALERT_MESSAGES = {
    EventType.CODE_PASTE: "Large code block pasted into the editor",
    EventType.DEVTOOLS_OPEN: "Browser DevTools opened during the interview",
    EventType.AI_PATTERN_DETECTED: "AI-generated code pattern detected",
    EventType.RAPID_SOLUTION: "Full solution appeared in under 30 seconds",
    EventType.KEYBOARD_SHORTCUT_CHEAT: "Blocked DevTools keyboard shortcut",
    EventType.FACE_NOT_DETECTED: "Candidate face not visible in camera",
    EventType.MULTIPLE_FACES_DETECTED: "Multiple faces detected in camera",
    EventType.GAZE_AWAY: "Candidate repeatedly looking away from screen",
    EventType.TAB_SWITCH: "Candidate switched browser tab",
    EventType.FULLSCREEN_EXIT: "Candidate exited fullscreen mode",
    EventType.PASTE_ATTEMPT: "Large paste detected in answer",
    EventType.WORD_BURST: "Burst of words inserted in under 2 seconds",
}

ALERT_SEVERITIES = {SeverityLevel.HIGH, SeverityLevel.CRITICAL}


def is_critical_cheat(event_type: str) -> bool:
    try:
        return EventType(event_type) in ALERT_ALWAYS_EVENTS
    except ValueError:
        return False


def should_alert(record: EventRecord) -> bool:
    return is_critical_cheat(record.event_type) or record.severity in ALERT_SEVERITIES


def alert_message(event_type: str) -> str:
    try:
        return ALERT_MESSAGES[EventType(event_type)]
    except (ValueError, KeyError):
        return f"Suspicious event: {event_type}"


def _snapshot(metadata: Optional[dict]) -> Optional[str]:
    if not metadata:
        return None
    snapshot = metadata.get("code_snapshot") or metadata.get("text_snapshot")
    if not isinstance(snapshot, str):
        return None
    return snapshot[:SNAPSHOT_LIMIT]


def build_alert(record: EventRecord) -> Optional[CheatAlert]:
    """Project an accepted event into an alert, or None if it does not qualify."""
    if not should_alert(record):
        return None

    return CheatAlert(
        id=f"alert_{record.id}",
        session_id=record.session_id,
        event_type=record.event_type,
        severity=record.severity,
        message=alert_message(record.event_type),
        timestamp=record.timestamp,
        code_snapshot=_snapshot(record.metadata),
    )


def alerts_for_history(records: Iterable[EventRecord]) -> list[CheatAlert]:
    alerts = []
    for record in records:
        alert = build_alert(record)
        if alert is not None:
            alerts.append(alert)
    return alerts
