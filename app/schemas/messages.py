"""
Wire messages carried by the session transport.

Every frame is a JSON object with a ``type`` discriminator. Inbound frames are
validated against the closed ``InboundMessage`` union; anything else is
rejected at the boundary.
"""
from pydantic import BaseModel, Field, TypeAdapter
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from app.schemas.event import BehaviorSignal, CheatAlert, EventRecord
from app.schemas.meeting import CodingChallenge
from app.utils.enums import CodingLanguage, Role


# Handshake payloads (SDP, ICE) are opaque; the relay never looks inside.
PeerSignal = dict[str, Any]


# Client -> server

class RecruiterSubscribe(BaseModel):
    type: Literal["recruiter_subscribe"]
    meeting_id: str


class CandidateJoined(BaseModel):
    type: Literal["candidate_joined"]
    meeting_id: str
    session_id: str
    candidate_name: str


class BehaviorEventMessage(BaseModel):
    type: Literal["behavior_event"]
    session_id: str
    event: BehaviorSignal


class AnswerSubmitted(BaseModel):
    type: Literal["answer_submitted"]
    session_id: str
    answer: str
    question_index: int = Field(..., ge=0)


class CodeUpdateIn(BaseModel):
    type: Literal["code_update"]
    session_id: str
    code: str
    language: CodingLanguage


class RecruiterPushQuestion(BaseModel):
    type: Literal["recruiter_push_question"]
    meeting_id: str
    session_id: str
    challenge: CodingChallenge


class SessionEnd(BaseModel):
    type: Literal["session_end"]
    session_id: str


class CallReady(BaseModel):
    type: Literal["call_ready"]
    meeting_id: str
    session_id: str


class SdpMessage(BaseModel):
    type: Literal[
        "webrtc_offer",
        "webrtc_answer",
        "screen_share_offer",
        "screen_share_answer",
    ]
    meeting_id: str
    session_id: str
    signal: PeerSignal


class IceMessage(BaseModel):
    type: Literal["webrtc_ice_candidate", "screen_share_ice"]
    target: Role
    meeting_id: str
    session_id: str
    candidate: PeerSignal


class ScreenShareStopped(BaseModel):
    type: Literal["screen_share_stopped"]
    meeting_id: str
    session_id: str


InboundMessage = Annotated[
    Union[
        RecruiterSubscribe,
        CandidateJoined,
        BehaviorEventMessage,
        AnswerSubmitted,
        CodeUpdateIn,
        RecruiterPushQuestion,
        SessionEnd,
        CallReady,
        SdpMessage,
        IceMessage,
        ScreenShareStopped,
    ],
    Field(discriminator="type"),
]

inbound_adapter = TypeAdapter(InboundMessage)


def parse_inbound(payload: Any):
    """Validate a raw frame. Raises pydantic.ValidationError on unknown shapes."""
    return inbound_adapter.validate_python(payload)


# Server -> client

class OutboundMessage(BaseModel):
    def to_wire(self) -> dict:
        data = self.model_dump(mode="json")
        # Drop unset top-level fields only; relayed payloads pass through untouched
        return {key: value for key, value in data.items() if value is not None}


class LiveEventUpdate(OutboundMessage):
    type: Literal["live_event_update"] = "live_event_update"
    event: EventRecord


class ScoreUpdateMessage(OutboundMessage):
    type: Literal["score_update"] = "score_update"
    authenticity_score: int
    suspicion_delta: int
    total_events: int


class CheatAlertMessage(OutboundMessage):
    type: Literal["cheat_alert"] = "cheat_alert"
    alert: CheatAlert


class CodeUpdateOut(OutboundMessage):
    type: Literal["code_update"] = "code_update"
    session_id: str
    code: str
    language: CodingLanguage
    char_count: int
    timestamp: datetime


class QuestionPushed(OutboundMessage):
    type: Literal["question_pushed"] = "question_pushed"
    challenge: CodingChallenge


class CandidateStatus(OutboundMessage):
    type: Literal["candidate_status"] = "candidate_status"
    joined: bool
    candidate_name: Optional[str] = None
    monitoring_active: bool


class Subscribed(OutboundMessage):
    type: Literal["subscribed"] = "subscribed"
    room: str


class PeerCallReady(OutboundMessage):
    type: Literal["peer_call_ready"] = "peer_call_ready"
    meeting_id: str
    session_id: str


class RelayedSignal(OutboundMessage):
    type: str
    meeting_id: str
    session_id: str
    from_role: Role
    signal: Optional[PeerSignal] = None
    candidate: Optional[PeerSignal] = None


class SessionEnded(OutboundMessage):
    type: Literal["session_ended"] = "session_ended"
    final_score: int


class CandidateWarning(OutboundMessage):
    type: Literal["warning"] = "warning"
    event_type: str
    message: str


class ErrorMessage(OutboundMessage):
    type: Literal["error"] = "error"
    message: str
