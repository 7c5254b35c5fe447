"""Pydantic schemas for practice-session endpoints."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.domain.models import (
    AnswerAnalysis,
    Question,
    SessionAnswer,
    SessionResults,
    SessionStatus,
    SessionType,
    TranscriptionResult,
)

_CONFIG = ConfigDict(populate_by_name=True)


class StartSessionRequest(BaseModel):
    """Body of ``POST /sessions``."""

    model_config = _CONFIG

    session_type: SessionType = Field(
        default=SessionType.MIXED,
        alias="sessionType",
        description="Interview flavour: hr, technical, aptitude or mixed",
    )
    questions: List[Question] = Field(..., min_length=1, description="Ordered questions to ask")


class SessionStateResponse(BaseModel):
    """Snapshot of a live or finished session."""

    model_config = _CONFIG

    session_id: str = Field(..., alias="sessionId")
    session_type: SessionType = Field(..., alias="sessionType")
    status: SessionStatus
    start_time: datetime = Field(..., alias="startTime")
    end_time: Optional[datetime] = Field(default=None, alias="endTime")
    current_question_index: int = Field(..., alias="currentQuestionIndex")
    total_questions: int = Field(..., alias="totalQuestions")
    current_question: Optional[Question] = Field(default=None, alias="currentQuestion")
    answers: List[SessionAnswer] = Field(default_factory=list)
    save_error: Optional[str] = Field(default=None, alias="saveError")
    warnings: List[str] = Field(default_factory=list)


class QuickFeedbackView(BaseModel):
    model_config = _CONFIG

    word_count: int = Field(..., alias="wordCount")
    words_per_minute: int = Field(..., alias="wordsPerMinute")
    estimated_score: int = Field(..., alias="estimatedScore")
    quick_tips: List[str] = Field(default_factory=list, alias="quickTips")


class AnswerResponse(BaseModel):
    """Result of ``POST /sessions/{id}/answers``."""

    model_config = _CONFIG

    question_id: str = Field(..., alias="questionId")
    transcription: TranscriptionResult
    analysis: AnswerAnalysis
    quick_feedback: Optional[QuickFeedbackView] = Field(default=None, alias="quickFeedback")
    recording_url: Optional[str] = Field(default=None, alias="recordingUrl")
    session: SessionStateResponse


class AnswerFailureDetail(BaseModel):
    """422 body when transcription fails; the session stays on the same question."""

    model_config = _CONFIG

    error: str
    display_error: str = Field(..., alias="displayError")
    question_id: str = Field(..., alias="questionId")


class SessionResultsResponse(BaseModel):
    model_config = _CONFIG

    results: SessionResults
    save_error: Optional[str] = Field(default=None, alias="saveError")
    warnings: List[str] = Field(default_factory=list)


class ProgressResponse(BaseModel):
    """Per-user progress document, empty for users without completed sessions."""

    progress: Optional[dict[str, Any]] = None
    recent_sessions: List[dict[str, Any]] = Field(default_factory=list, alias="recentSessions")

    model_config = _CONFIG
