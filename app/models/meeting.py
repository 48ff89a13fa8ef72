from sqlalchemy import Column, String, DateTime, JSON
from datetime import datetime
from app.core.database import Base


class Meeting(Base):
    __tablename__ = "meetings"

    id = Column(String, primary_key=True, index=True)
    recruiter_name = Column(String, nullable=False)
    status = Column(String, default="waiting")  # waiting | active | ended

    coding_challenge = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
