from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Optional
from app.utils.enums import SeverityLevel


class BehaviorSignal(BaseModel):
    """A single observation emitted by a detector. Immutable; duplicates are valid."""

    event_type: str = Field(..., min_length=1, max_length=64)
    severity: SeverityLevel
    timestamp: datetime
    metadata: Optional[dict[str, Any]] = None

    class Config:
        frozen = True


class EventCreate(BehaviorSignal):
    """HTTP ingestion payload: a signal addressed to a session."""

    session_id: str


class EventRecord(BaseModel):
    id: str
    session_id: str
    sequence: int
    event_type: str
    severity: SeverityLevel
    timestamp: datetime
    metadata: Optional[dict[str, Any]] = None


class ScoreUpdate(BaseModel):
    authenticity_score: int
    suspicion_delta: int
    total_events: int


class CheatAlert(BaseModel):
    id: str
    session_id: str
    event_type: str
    severity: SeverityLevel
    message: str
    timestamp: datetime
    code_snapshot: Optional[str] = None


class EventResponse(BaseModel):
    event_id: str
    session_id: str
    current_score: int
    suspicion_delta: int
    integrity_tier: str
    alert: Optional[CheatAlert] = None
