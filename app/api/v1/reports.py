from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services import meeting_service
from app.services.final_report_builder import build_final_report

router = APIRouter()


@router.get("/reports/{session_id}")
def get_session_report(
    session_id: str,
    db: Session = Depends(get_db)
):
    session = meeting_service.get_session_by_id(db, session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    events = meeting_service.get_events_by_session(db, session_id)
    return build_final_report(session, events)
