from collections import Counter

from app.services.alert_classifier import alerts_for_history
from app.services.risk_engine import classify_score, describe_event, score_breakdown
from app.utils.enums import EventType


def build_final_report(session, events) -> dict:
    """Rebuild the full session report from the stored event log alone."""
    breakdown = score_breakdown(events)
    counts = Counter(event.event_type for event in events)
    alerts = alerts_for_history(events)

    tab_switch = counts.get(EventType.TAB_SWITCH.value, 0)
    window_blur = counts.get(EventType.WINDOW_BLUR.value, 0)
    face_missing = counts.get(EventType.FACE_NOT_DETECTED.value, 0)
    multiple_faces = counts.get(EventType.MULTIPLE_FACES_DETECTED.value, 0)
    pastes = counts.get(EventType.PASTE_ATTEMPT.value, 0) + counts.get(EventType.CODE_PASTE.value, 0)
    devtools = counts.get(EventType.DEVTOOLS_OPEN.value, 0)

    # Interpretation (Static)
    interpretation = {}

    if tab_switch > 0:
        interpretation["tab_behavior"] = (
            f"Tab switching observed {tab_switch} times"
        )

    if window_blur > 0:
        interpretation["focus_behavior"] = (
            f"Window focus was lost {window_blur} times"
        )

    if face_missing > 0:
        interpretation["face_presence"] = (
            f"Candidate left the camera frame {face_missing} times"
        )

    if multiple_faces > 0:
        interpretation["external_presence"] = (
            "More than one face was detected during the interview"
        )

    if pastes > 0:
        interpretation["paste_behavior"] = (
            f"Pasted content was detected {pastes} times"
        )

    if devtools > 0:
        interpretation["tooling"] = (
            "Browser developer tools were opened during the interview"
        )

    return {
        "session_id": session.id,
        "candidate_name": session.candidate_name,
        "started_at": session.started_at,
        "ended_at": session.ended_at,

        "summary": {
            "authenticity_score": breakdown["score"],
            "integrity_tier": classify_score(breakdown["score"]),
            "total_events": len(events),
            "total_penalty": breakdown["total_penalty"],
            "pattern_penalty": breakdown["pattern_penalty"],
        },

        "event_counts": dict(counts),

        "penalties": [
            {**reason, "description": describe_event(reason["event_type"])}
            for reason in breakdown["reasons"]
        ],

        "alerts": [alert.model_dump(mode="json") for alert in alerts],

        "interpretation": interpretation,

        "final_decision_note": (
            "This report summarizes observed candidate behavior. "
            "Final interview decisions should always be made by the interviewer."
        ),
    }
