"""SQLAlchemy model for practice sessions."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import JSONB

from app.models.base import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PracticeSession(Base):
    __tablename__ = "practice_sessions"

    id = Column(String(96), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    kind = Column(String(32), nullable=False, default="interview")
    session_type = Column(String(32), nullable=False)
    status = Column(String(20), nullable=False, default="in-progress", index=True)
    start_time = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    end_time = Column(DateTime(timezone=True), nullable=True)
    total_questions = Column(Integer, nullable=False, default=0)
    completed_questions = Column(Integer, nullable=False, default=0)
    average_score = Column(Integer, nullable=False, default=0)
    total_duration = Column(Integer, nullable=False, default=0)
    # Ordered answer documents, appended one per resolved question.
    questions = Column(JSONB, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )


__all__ = ["PracticeSession"]
