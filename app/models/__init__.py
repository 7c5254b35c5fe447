"""SQLAlchemy models for the practice backend."""

from .base import Base
from .practice_session import PracticeSession  # noqa: F401
from .session_answer import SessionAnswerRecord  # noqa: F401
from .user_progress import UserProgress  # noqa: F401

__all__ = [
    "Base",
    "PracticeSession",
    "SessionAnswerRecord",
    "UserProgress",
]
