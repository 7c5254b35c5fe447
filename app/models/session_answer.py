"""SQLAlchemy model for individually persisted answers."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB

from app.models.base import Base
from app.models.practice_session import utc_now


class SessionAnswerRecord(Base):
    __tablename__ = "session_answers"

    # "{session_id}_{question_id}"
    id = Column(String(256), primary_key=True)
    session_id = Column(
        ForeignKey("practice_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(String(128), nullable=False, index=True)
    question_id = Column(String(128), nullable=False)
    payload = Column(JSONB, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


__all__ = ["SessionAnswerRecord"]
