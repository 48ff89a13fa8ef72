from sqlalchemy import Column, String, DateTime, Integer, ForeignKey
from datetime import datetime
from app.core.database import Base


class CandidateSession(Base):
    __tablename__ = "candidate_sessions"

    id = Column(String, primary_key=True, index=True)
    meeting_id = Column(String, ForeignKey("meetings.id"), index=True)
    candidate_name = Column(String, nullable=False)

    authenticity_score = Column(Integer, default=100)

    started_at = Column(DateTime, default=datetime.utcnow)
    ended_at = Column(DateTime, nullable=True)
