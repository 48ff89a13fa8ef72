from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from app.schemas.event import EventRecord
from app.utils.enums import CodingLanguage, MeetingStatus


class CodingExample(BaseModel):
    input: str
    output: str
    explanation: Optional[str] = None


class CodingChallenge(BaseModel):
    id: str
    title: str
    description: str
    language: CodingLanguage
    starter_code: str = ""
    examples: Optional[list[CodingExample]] = None
    constraints: Optional[list[str]] = None


class MeetingResponse(BaseModel):
    id: str
    recruiter_name: str
    status: MeetingStatus
    created_at: datetime
    coding_challenge: Optional[CodingChallenge] = None

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    id: str
    meeting_id: str
    candidate_name: str
    authenticity_score: int
    started_at: datetime
    ended_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreateMeetingRequest(BaseModel):
    recruiter_name: str = Field(..., min_length=1)
    coding_challenge: Optional[CodingChallenge] = None


class CreateMeetingResponse(BaseModel):
    meeting: MeetingResponse
    join_link: str


class JoinMeetingRequest(BaseModel):
    candidate_name: str = Field(..., min_length=1)


class JoinMeetingResponse(BaseModel):
    session: SessionResponse
    meeting: MeetingResponse


class MeetingDashboard(BaseModel):
    meeting: MeetingResponse
    session: Optional[SessionResponse] = None
    events: list[EventRecord] = []
