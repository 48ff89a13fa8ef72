import math
from collections import defaultdict
from typing import Any, Iterable, Optional

from app.services.risk_config import (
    BASE_SCORE,
    BLUR_REPEAT_PENALTY,
    BLUR_REPEAT_THRESHOLD,
    CRITICAL_CHEAT_EVENTS,
    EVENT_WEIGHTS,
    INTEGRITY_THRESHOLDS,
    REPEAT_CHEAT_MULTIPLIER,
    REPEAT_CHEAT_THRESHOLD,
)
from app.utils.enums import EventType, IntegrityTier


def _event_type_of(event: Any) -> Optional[EventType]:
    """Resolve the event type of a record, dict or bare string; None if unknown."""
    if isinstance(event, dict):
        raw = event.get("event_type")
    elif isinstance(event, str):
        raw = event
    else:
        raw = getattr(event, "event_type", None)

    try:
        return EventType(raw)
    except ValueError:
        return None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def evaluate_event(event_type: str) -> int:
    """Base suspicion weight of a single event type. Unknown types weigh 0."""
    resolved = _event_type_of(event_type)
    if resolved is None or resolved not in EVENT_WEIGHTS:
        return 0
    return EVENT_WEIGHTS[resolved]["weight"]


def describe_event(event_type: str) -> str:
    resolved = _event_type_of(event_type)
    if resolved is None or resolved not in EVENT_WEIGHTS:
        return "Unknown event"
    return EVENT_WEIGHTS[resolved]["description"]


def score_breakdown(events: Iterable[Any]) -> dict:
    """
    Walk an ordered event history and return every penalty applied.

    Escalation is per occurrence: the first REPEAT_CHEAT_THRESHOLD
    occurrences of a critical cheat type cost their base weight, every later
    one costs the weight times REPEAT_CHEAT_MULTIPLIER.
    """
    events = list(events)
    occurrences = defaultdict(int)
    blur_count = 0
    total_penalty = 0
    reasons = []

    for event in events:
        event_type = _event_type_of(event)
        if event_type is None:
            continue

        if event_type == EventType.WINDOW_BLUR:
            blur_count += 1

        penalty = evaluate_event(event_type)
        escalated = False

        if event_type in CRITICAL_CHEAT_EVENTS:
            occurrences[event_type] += 1
            if occurrences[event_type] > REPEAT_CHEAT_THRESHOLD:
                penalty = _round_half_up(penalty * REPEAT_CHEAT_MULTIPLIER)
                escalated = True

        if penalty == 0:
            continue

        total_penalty += penalty
        reasons.append({
            "event_type": event_type.value,
            "penalty": penalty,
            "escalated": escalated,
        })

    pattern_penalty = 0
    if blur_count >= BLUR_REPEAT_THRESHOLD:
        pattern_penalty = BLUR_REPEAT_PENALTY
        total_penalty += pattern_penalty

    return {
        "total_penalty": total_penalty,
        "pattern_penalty": pattern_penalty,
        "reasons": reasons,
        "score": clamp_score(BASE_SCORE - total_penalty),
    }


def calculate_score(events: Iterable[Any]) -> int:
    """Authenticity score (0-100) for a session's full event history."""
    return score_breakdown(events)["score"]


def clamp_score(score: int) -> int:
    return max(0, min(BASE_SCORE, score))


def classify_score(score: int) -> str:
    if score >= INTEGRITY_THRESHOLDS["high"]:
        return IntegrityTier.HIGH.value
    elif score >= INTEGRITY_THRESHOLDS["moderate"]:
        return IntegrityTier.MODERATE.value
    return IntegrityTier.LOW.value
