import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import SessionClosedError, SessionNotFoundError
from app.schemas.event import BehaviorSignal, EventCreate, EventResponse
from app.services.event_service import submit_signal
from app.services.risk_engine import classify_score

router = APIRouter()


@router.post("/events", response_model=EventResponse)
async def ingest_event(
    event: EventCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    gateway = request.app.state.gateway
    signal = BehaviorSignal(**event.model_dump(exclude={"session_id"}))

    async with gateway.hub.sequencer:
        try:
            outcome = await asyncio.to_thread(submit_signal, db, event.session_id, signal)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except SessionClosedError as e:
            raise HTTPException(status_code=409, detail=str(e))

        await gateway.publish_outcome(event.session_id, outcome)

    return EventResponse(
        event_id=outcome.record.id,
        session_id=event.session_id,
        current_score=outcome.score.authenticity_score,
        suspicion_delta=outcome.score.suspicion_delta,
        integrity_tier=classify_score(outcome.score.authenticity_score),
        alert=outcome.alert,
    )
