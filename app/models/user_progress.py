"""SQLAlchemy model for per-user practice progress."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Float, Integer, String
from sqlalchemy.dialects.postgresql import JSONB

from app.models.base import Base
from app.models.practice_session import utc_now


class UserProgress(Base):
    __tablename__ = "user_progress"

    user_id = Column(String(128), primary_key=True)
    total_sessions = Column(Integer, nullable=False, default=0)
    completed_sessions = Column(Integer, nullable=False, default=0)
    total_practice_minutes = Column(Integer, nullable=False, default=0)
    average_score = Column(Float, nullable=False, default=0.0)
    best_score = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    streak_days = Column(Integer, nullable=False, default=0)
    sessions_by_type = Column(JSONB, nullable=False, default=dict)
    skill_breakdown = Column(JSONB, nullable=False, default=dict)
    last_session_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )


__all__ = ["UserProgress"]
