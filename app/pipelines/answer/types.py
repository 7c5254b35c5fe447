"""Typed containers shared across the answer pipeline.

Kept in their own module so ``orchestrator`` and the HTTP layer can import
them without circular dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.domain.models import AnswerAnalysis, Question, TranscriptionResult


class PipelinePhase(str, Enum):
    """User-facing processing state layered on top of the capture state."""

    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class AnswerOutcome:
    """Terminal result of one processing attempt for one question."""

    question: Question
    transcription: TranscriptionResult
    analysis: Optional[AnswerAnalysis]
    audio_duration_seconds: float
    error: Optional[str] = None
    display_error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.analysis is not None


__all__ = ["AnswerOutcome", "PipelinePhase"]
