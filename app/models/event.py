from sqlalchemy import Column, String, DateTime, Integer, JSON, ForeignKey
from datetime import datetime
from app.core.database import Base


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(String, primary_key=True, index=True)
    session_id = Column(String, ForeignKey("candidate_sessions.id"), index=True)

    # Arrival order within the session; the client clock is not trusted
    sequence = Column(Integer, nullable=False)

    event_type = Column(String, index=True)
    severity = Column(String)
    event_metadata = Column("metadata", JSON, nullable=True)

    timestamp = Column(DateTime, default=datetime.utcnow)
    received_at = Column(DateTime, default=datetime.utcnow)
