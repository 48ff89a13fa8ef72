import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.errors import (
    InvalidStateError,
    MeetingNotFoundError,
    SessionClosedError,
    SessionNotFoundError,
)
from app.schemas.event import CheatAlert, EventRecord
from app.schemas.meeting import (
    CreateMeetingRequest,
    CreateMeetingResponse,
    JoinMeetingRequest,
    JoinMeetingResponse,
    MeetingDashboard,
    MeetingResponse,
    SessionResponse,
)
from app.services import meeting_service
from app.services.alert_classifier import alerts_for_history
from app.services.event_service import finish_session

router = APIRouter()


# Meeting APIs
@router.post("/meetings", response_model=CreateMeetingResponse)
def create_meeting(payload: CreateMeetingRequest, db: Session = Depends(get_db)):
    challenge = payload.coding_challenge.model_dump(mode="json") if payload.coding_challenge else None
    meeting = meeting_service.create_meeting(db, payload.recruiter_name, challenge)
    return CreateMeetingResponse(
        meeting=MeetingResponse.model_validate(meeting),
        join_link=f"/join/{meeting.id}",
    )


@router.get("/meetings/{meeting_id}", response_model=MeetingDashboard)
def get_meeting(meeting_id: str, db: Session = Depends(get_db)):
    dashboard = meeting_service.get_meeting_dashboard(db, meeting_id)
    if not dashboard:
        raise HTTPException(status_code=404, detail="Meeting not found")

    session = dashboard["session"]
    return MeetingDashboard(
        meeting=MeetingResponse.model_validate(dashboard["meeting"]),
        session=SessionResponse.model_validate(session) if session else None,
        events=dashboard["events"],
    )


@router.post("/meetings/{meeting_id}/join", response_model=JoinMeetingResponse)
def join_meeting(
    meeting_id: str,
    payload: JoinMeetingRequest,
    db: Session = Depends(get_db),
):
    try:
        session = meeting_service.create_session(db, meeting_id, payload.candidate_name)
    except MeetingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    meeting = meeting_service.get_meeting_by_id(db, meeting_id)
    return JoinMeetingResponse(
        session=SessionResponse.model_validate(session),
        meeting=MeetingResponse.model_validate(meeting),
    )


# Session APIs
@router.post("/sessions/{session_id}/end", response_model=SessionResponse)
async def end_interview_session(
    session_id: str,
    request: Request,
    db: Session = Depends(get_db),
):
    gateway = request.app.state.gateway

    async with gateway.hub.sequencer:
        try:
            final_score = await asyncio.to_thread(finish_session, db, session_id)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except (SessionClosedError, InvalidStateError) as e:
            raise HTTPException(status_code=409, detail=str(e))

        session = await asyncio.to_thread(meeting_service.get_session_by_id, db, session_id)
        await gateway.announce_end(session.meeting_id, session_id, final_score)

    return SessionResponse.model_validate(session)


@router.get("/sessions/{session_id}/events", response_model=list[EventRecord])
def list_session_events(session_id: str, db: Session = Depends(get_db)):
    if not meeting_service.get_session_by_id(db, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return meeting_service.get_events_by_session(db, session_id)


@router.get("/sessions/{session_id}/alerts", response_model=list[CheatAlert])
def list_session_alerts(session_id: str, db: Session = Depends(get_db)):
    if not meeting_service.get_session_by_id(db, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return alerts_for_history(meeting_service.get_events_by_session(db, session_id))


@router.get("/call/config")
def call_config(request: Request):
    capabilities = getattr(request.app.state, "capabilities", None)
    ice_servers = capabilities.ice_servers if capabilities else settings.ICE_SERVERS
    return {
        "ice_servers": [{"urls": url} for url in ice_servers],
        "media_timeout_seconds": settings.MEDIA_TIMEOUT_SECONDS,
    }
