"""Domain models shared by the capture, transcription, analysis and session layers.

Field names are snake_case in Python and camelCase on the wire; every model
accepts either spelling so payloads from the remote scoring service and the
browser client validate without translation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

_WIRE_CONFIG = ConfigDict(populate_by_name=True, extra="ignore")


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def _clamp_score(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(max(0, min(100, round(number))))


@dataclass(frozen=True)
class AudioArtifact:
    """Finalized recording handed from capture to transcription."""

    data: bytes
    mime_type: str
    duration_seconds: float | None = None
    filename: str = "recording"

    @property
    def size(self) -> int:
        return len(self.data)


class QuestionType(str, Enum):
    BEHAVIORAL = "behavioral"
    TECHNICAL = "technical"
    SITUATIONAL = "situational"
    CASE_STUDY = "case-study"


class SessionType(str, Enum):
    HR = "hr"
    TECHNICAL = "technical"
    APTITUDE = "aptitude"
    MIXED = "mixed"


class SessionStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Efficiency(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    POOR = "poor"


class Question(BaseModel):
    """Interview question supplied by the caller; read-only to the pipeline."""

    id: str
    text: str = Field(alias="question")
    type: QuestionType = QuestionType.BEHAVIORAL
    difficulty: str = "medium"
    skills_evaluated: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("skills_evaluated", "skillsEvaluated", "skills"),
        serialization_alias="skillsEvaluated",
    )
    expected_duration_seconds: int = Field(
        default=120,
        ge=0,
        validation_alias=AliasChoices(
            "expected_duration_seconds", "expectedDurationSeconds", "expectedDuration"
        ),
        serialization_alias="expectedDurationSeconds",
    )
    category: str = "general"

    model_config = _WIRE_CONFIG


class TranscriptionResult(BaseModel):
    """Uniform outcome of one speech-to-text attempt."""

    transcript: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    success: bool
    error: Optional[str] = None
    processing_time_ms: int = Field(default=0, alias="processingTime")
    word_count: int = Field(default=0, alias="wordCount")
    detected_language: Optional[str] = Field(default=None, alias="language")
    duration_seconds: Optional[float] = Field(default=None, alias="duration")

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class AnalysisFeedback(BaseModel):
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    detailed_feedback: str = Field(default="", alias="detailedFeedback")

    model_config = _WIRE_CONFIG


class AnalysisScores(BaseModel):
    clarity: int = 0
    relevance: int = 0
    structure: int = 0
    completeness: int = 0
    confidence: int = 0

    model_config = _WIRE_CONFIG

    @field_validator("clarity", "relevance", "structure", "completeness", "confidence", mode="before")
    @classmethod
    def clamp(cls, value: Any) -> int:
        return _clamp_score(value)

    def mean(self) -> float:
        values = (self.clarity, self.relevance, self.structure, self.completeness, self.confidence)
        return sum(values) / len(values)


class KeyPoints(BaseModel):
    covered: List[str] = Field(default_factory=list)
    missed: List[str] = Field(default_factory=list)

    model_config = _WIRE_CONFIG


class TimeManagement(BaseModel):
    duration: float = 0.0
    efficiency: Efficiency = Efficiency.AVERAGE
    pacing: str = ""

    model_config = _WIRE_CONFIG

    @field_validator("efficiency", mode="before")
    @classmethod
    def normalize_efficiency(cls, value: Any) -> Efficiency:
        if isinstance(value, Efficiency):
            return value
        try:
            return Efficiency(str(value).strip().lower())
        except ValueError:
            return Efficiency.AVERAGE


class AnswerAnalysis(BaseModel):
    """Structured evaluation of one transcript against one question."""

    overall_score: int = Field(alias="overallScore")
    scores: AnalysisScores = Field(default_factory=AnalysisScores)
    feedback: AnalysisFeedback = Field(default_factory=AnalysisFeedback)
    key_points: KeyPoints = Field(default_factory=KeyPoints, alias="keyPoints")
    time_management: TimeManagement = Field(default_factory=TimeManagement, alias="timeManagement")
    transcript: str = ""
    processing_time_ms: int = Field(default=0, alias="processingTime")

    model_config = _WIRE_CONFIG

    @field_validator("overall_score", mode="before")
    @classmethod
    def clamp_overall(cls, value: Any) -> int:
        if value is None:
            raise ValueError("overallScore is required")
        return _clamp_score(value)


class SessionAnswer(BaseModel):
    """One resolved question inside a session (answered or skipped)."""

    question: Question
    transcription: Optional[TranscriptionResult] = None
    analysis: AnswerAnalysis
    audio_duration_seconds: float = Field(default=0.0, alias="audioDuration")
    skipped: bool = False
    timestamp: datetime = Field(default_factory=utc_now)

    model_config = _WIRE_CONFIG

    def to_document(self) -> dict[str, Any]:
        """Shape persisted by document stores for a single answer."""

        transcription = self.transcription
        return {
            "questionId": self.question.id,
            "questionText": self.question.text,
            "questionType": self.question.type.value,
            "difficulty": self.question.difficulty,
            "skipped": self.skipped,
            "answer": {
                "transcript": transcription.transcript if transcription else "",
                "transcriptionConfidence": transcription.confidence if transcription else 0.0,
                "audioDuration": self.audio_duration_seconds,
                "wordCount": transcription.word_count if transcription else 0,
            },
            "analysis": self.analysis.model_dump(by_alias=True, mode="json"),
            "timestamp": self.timestamp.isoformat(),
        }


class SessionResults(BaseModel):
    """Aggregate figures written when a session is finalized."""

    session_id: str = Field(alias="sessionId")
    session_type: SessionType = Field(alias="sessionType")
    status: SessionStatus = SessionStatus.COMPLETED
    total_questions: int = Field(alias="totalQuestions")
    completed_questions: int = Field(alias="completedQuestions")
    average_score: int = Field(alias="averageScore")
    total_duration_seconds: int = Field(alias="totalDuration")
    end_time: datetime = Field(default_factory=utc_now, alias="endTime")
    analyses: List[AnswerAnalysis] = Field(default_factory=list)

    model_config = _WIRE_CONFIG


class SessionRecord(BaseModel):
    """In-memory source of truth for one practice session."""

    session_id: str = Field(alias="sessionId")
    user_id: str = Field(alias="userId")
    session_type: SessionType = Field(alias="sessionType")
    status: SessionStatus = SessionStatus.IN_PROGRESS
    start_time: datetime = Field(default_factory=utc_now, alias="startTime")
    end_time: Optional[datetime] = Field(default=None, alias="endTime")
    questions: List[Question] = Field(default_factory=list)
    answers: List[SessionAnswer] = Field(default_factory=list)
    current_index: int = Field(default=0, alias="currentQuestionIndex")
    total_questions: int = Field(default=0, alias="totalQuestions")
    completed_questions: int = Field(default=0, alias="completedQuestions")
    average_score: int = Field(default=0, alias="averageScore")
    total_duration_seconds: int = Field(default=0, alias="totalDuration")
    save_error: Optional[str] = Field(default=None, alias="saveError")

    model_config = _WIRE_CONFIG

    @property
    def current_question(self) -> Question | None:
        if self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    @property
    def all_resolved(self) -> bool:
        return len(self.answers) >= len(self.questions)


__all__ = [
    "AnalysisFeedback",
    "AnalysisScores",
    "AnswerAnalysis",
    "AudioArtifact",
    "Efficiency",
    "KeyPoints",
    "Question",
    "QuestionType",
    "SessionAnswer",
    "SessionRecord",
    "SessionResults",
    "SessionStatus",
    "SessionType",
    "TimeManagement",
    "TranscriptionResult",
    "utc_now",
]
