"""Answer analysis with a deterministic fallback.

:meth:`AnalysisClient.analyze` always returns a structurally valid
:class:`~app.domain.models.AnswerAnalysis`. Transport failures, provider
errors and malformed JSON are logged and replaced with
:func:`fallback_analysis`, so a transient scoring outage never blocks an
interview.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List

from app.domain.models import (
    AnalysisFeedback,
    AnalysisScores,
    AnswerAnalysis,
    Efficiency,
    KeyPoints,
    Question,
    TimeManagement,
)
from app.services.llm_client import LlmInvocationError, ScoringLlmClient
from app.services.prompt_builder import build_analysis_prompt
from app.services.response_contract import ResponseContractError, parse_answer_analysis
from app.telemetry import record_analysis

logger = logging.getLogger("app.services.answer_pipeline")

FALLBACK_DETAILED_FEEDBACK = (
    "We encountered an issue analyzing your response. Please try again later."
)


def fallback_analysis(
    transcript: str,
    audio_duration_seconds: float,
    processing_time_ms: int = 0,
) -> AnswerAnalysis:
    """Zero-score analysis substituted whenever scoring fails."""

    return AnswerAnalysis(
        overall_score=0,
        transcript=transcript,
        feedback=AnalysisFeedback(
            strengths=[],
            weaknesses=["Analysis service temporarily unavailable"],
            suggestions=["Please try again later"],
            detailed_feedback=FALLBACK_DETAILED_FEEDBACK,
        ),
        scores=AnalysisScores(),
        key_points=KeyPoints(covered=[], missed=[]),
        time_management=TimeManagement(
            duration=audio_duration_seconds,
            efficiency=Efficiency.POOR,
            pacing="Unable to analyze due to service error",
        ),
        processing_time_ms=processing_time_ms,
    )


@dataclass(frozen=True)
class QuickFeedback:
    """Instant, offline estimate shown while the full analysis runs."""

    word_count: int
    duration_seconds: float
    words_per_minute: int
    estimated_score: int
    quick_tips: List[str] = field(default_factory=list)


def quick_feedback(transcript: str, duration_seconds: float) -> QuickFeedback:
    word_count = len(transcript.split())
    wpm = round(word_count / duration_seconds * 60) if duration_seconds > 0 else 0
    estimated = min(max(round(word_count / 100 * 80 + 20), 20), 95)

    tips: List[str] = []
    if duration_seconds < 30:
        tips.append("Consider providing more detailed examples")
    elif duration_seconds > 180:
        tips.append("Try to be more concise and focus on key points")
    if wpm < 100:
        tips.append("Speaking a bit faster could help convey confidence")
    elif wpm > 200:
        tips.append("Speaking slower could improve clarity")
    if word_count < 50:
        tips.append("Expanding with specific examples would strengthen your response")

    return QuickFeedback(
        word_count=word_count,
        duration_seconds=duration_seconds,
        words_per_minute=wpm,
        estimated_score=estimated,
        quick_tips=tips,
    )


class AnalysisClient:
    """Score one transcript against one question via the remote model."""

    def __init__(self, llm_client: ScoringLlmClient | None = None) -> None:
        self._llm = llm_client or ScoringLlmClient()

    async def analyze(
        self,
        transcript: str,
        question: Question,
        audio_duration_seconds: float,
        transcription_confidence: float,
    ) -> AnswerAnalysis:
        started = time.perf_counter()
        try:
            prompt = build_analysis_prompt(
                question,
                transcript,
                audio_duration_seconds,
                transcription_confidence,
            )
            raw_response = await self._llm.invoke(prompt)
            parsed = parse_answer_analysis(raw_response)
        except (LlmInvocationError, ResponseContractError) as exc:
            return self._fallback(transcript, audio_duration_seconds, started, exc)
        except Exception as exc:  # noqa: BLE001 - analysis must never raise
            logger.exception("Unexpected error during answer analysis question=%s", question.id)
            return self._fallback(transcript, audio_duration_seconds, started, exc)

        elapsed = time.perf_counter() - started
        analysis = parsed.model_copy(
            update={
                "transcript": transcript,
                "processing_time_ms": int(round(elapsed * 1000)),
                "time_management": parsed.time_management.model_copy(
                    update={"duration": audio_duration_seconds}
                ),
            }
        )
        record_analysis("ok", elapsed)
        logger.info(
            "Analysis complete question=%s overall=%s in %sms",
            question.id,
            analysis.overall_score,
            analysis.processing_time_ms,
        )
        return analysis

    def quick_feedback(self, transcript: str, duration_seconds: float) -> QuickFeedback:
        return quick_feedback(transcript, duration_seconds)

    @staticmethod
    def _fallback(
        transcript: str,
        audio_duration_seconds: float,
        started: float,
        exc: Exception,
    ) -> AnswerAnalysis:
        elapsed = time.perf_counter() - started
        logger.warning("Analysis unavailable, using fallback: %s", exc)
        record_analysis("fallback", elapsed)
        return fallback_analysis(
            transcript,
            audio_duration_seconds,
            processing_time_ms=int(round(elapsed * 1000)),
        )


def get_analysis_client() -> AnalysisClient:
    """Return the process-wide analysis client."""
    return _DEFAULT_CLIENT


_DEFAULT_CLIENT = AnalysisClient()


__all__ = [
    "AnalysisClient",
    "FALLBACK_DETAILED_FEEDBACK",
    "get_analysis_client",
    "QuickFeedback",
    "fallback_analysis",
    "quick_feedback",
]
