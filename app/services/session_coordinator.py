"""Sequence an ordered list of questions into one practice session.

The in-memory :class:`~app.domain.models.SessionRecord` is the source of
truth. Every persistence write is best-effort: a failing document store adds
a warning and sets ``save_error`` but never rolls back or blocks the flow.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from app.capture.session import AudioCaptureSession
from app.domain.models import (
    AnalysisFeedback,
    AnalysisScores,
    AnswerAnalysis,
    Efficiency,
    KeyPoints,
    Question,
    SessionAnswer,
    SessionRecord,
    SessionResults,
    SessionStatus,
    SessionType,
    TimeManagement,
    TranscriptionResult,
    utc_now,
)
from app.pipelines.answer import AnswerOutcome, AnswerPipelineOrchestrator
from app.services.analysis import AnalysisClient
from app.services.document_store import SESSION_KIND, DocumentStore, mint_session_id
from app.services.identity import IdentityContext
from app.services.progress import round_half_up
from app.services.transcribe import TranscriptionClient
from app.telemetry import record_persistence_failure

logger = logging.getLogger("app.services.answer_pipeline")

CaptureFactory = Callable[[], AudioCaptureSession]


class SessionStateError(RuntimeError):
    """Raised when an operation does not fit the session's current position."""


def skipped_analysis() -> AnswerAnalysis:
    """Zero-score placeholder appended for a skipped question."""

    return AnswerAnalysis(
        overall_score=0,
        transcript="",
        feedback=AnalysisFeedback(
            strengths=[],
            weaknesses=["Question was skipped"],
            suggestions=["Consider attempting all questions in a real interview"],
            detailed_feedback="This question was skipped during the practice session.",
        ),
        scores=AnalysisScores(),
        key_points=KeyPoints(covered=[], missed=["All key points - question not attempted"]),
        time_management=TimeManagement(
            duration=0,
            efficiency=Efficiency.POOR,
            pacing="Question skipped",
        ),
        processing_time_ms=0,
    )


def summarize(record: SessionRecord, *, now: datetime, status: SessionStatus) -> SessionResults:
    """Compute the aggregate figures for ``record`` at time ``now``."""

    answers = record.answers
    scores = [answer.analysis.overall_score for answer in answers]
    average = round_half_up(sum(scores) / len(scores)) if scores else 0
    elapsed = max(0.0, (now - record.start_time).total_seconds())
    return SessionResults(
        session_id=record.session_id,
        session_type=record.session_type,
        status=status,
        total_questions=len(record.questions),
        completed_questions=sum(1 for answer in answers if not answer.skipped),
        average_score=average,
        total_duration_seconds=int(round(elapsed)),
        end_time=now,
        analyses=[answer.analysis for answer in answers],
    )


class SessionCoordinator:
    """Drive one question at a time and accumulate the session record."""

    def __init__(
        self,
        identity: IdentityContext,
        store: DocumentStore,
        transcription_client: TranscriptionClient,
        analysis_client: AnalysisClient,
        *,
        capture_factory: Optional[CaptureFactory] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._identity = identity
        self._store = store
        self._transcription = transcription_client
        self._analysis = analysis_client
        self._capture_factory = capture_factory or AudioCaptureSession
        self._clock = clock
        self._orchestrator: AnswerPipelineOrchestrator | None = None
        self._persisted = False
        self.record: SessionRecord | None = None
        self.results: SessionResults | None = None
        self.warnings: List[str] = []

    @property
    def session_id(self) -> str | None:
        return self.record.session_id if self.record else None

    @property
    def user_id(self) -> str | None:
        return self.record.user_id if self.record else None

    @property
    def current_question(self) -> Question | None:
        return self.record.current_question if self.record else None

    @property
    def is_finished(self) -> bool:
        return self.record is not None and self.record.status is not SessionStatus.IN_PROGRESS

    # ---------------------------------------------------------------- start
    async def start_session(
        self,
        session_type: SessionType,
        questions: Sequence[Question],
    ) -> str:
        """Mint the session id and the initial record before any question is shown."""

        if self.record is not None:
            raise SessionStateError("Session already started")
        if not questions:
            raise SessionStateError("A session needs at least one question")

        user_id = self._identity.user_id
        started_at = self._clock()
        save_error = None
        try:
            session_id = await self._store.create_session(user_id, SESSION_KIND, session_type.value)
            self._persisted = True
        except Exception as exc:  # noqa: BLE001 - persistence is best-effort
            session_id = mint_session_id(user_id)
            save_error = self._warn("create_session", exc)

        self.record = SessionRecord(
            session_id=session_id,
            user_id=user_id,
            session_type=session_type,
            start_time=started_at,
            questions=list(questions),
            total_questions=len(questions),
            save_error=save_error,
        )
        logger.info(
            "Session started session=%s user=%s type=%s questions=%d",
            session_id,
            user_id,
            session_type.value,
            len(questions),
        )
        return session_id

    # ------------------------------------------------------------- pipeline
    def orchestrator(self) -> AnswerPipelineOrchestrator:
        """Return the pipeline for the current question, creating it on first use."""

        question = self._require_current()
        current = self._orchestrator
        if current is not None and current.question.id == question.id:
            return current
        self._retire_orchestrator()
        self._orchestrator = AnswerPipelineOrchestrator(
            question,
            self._capture_factory(),
            self._transcription,
            self._analysis,
            on_result=self._accept_outcome,
        )
        return self._orchestrator

    async def _accept_outcome(self, outcome: AnswerOutcome) -> None:
        if outcome.analysis is None or self.is_finished:
            return
        current = self.current_question
        if current is None or current.id != outcome.question.id:
            logger.info("Ignoring outcome for non-current question=%s", outcome.question.id)
            return
        await self.submit_answer(
            outcome.analysis,
            outcome.transcription,
            audio_duration_seconds=outcome.audio_duration_seconds,
        )

    def _retire_orchestrator(self) -> None:
        orchestrator, self._orchestrator = self._orchestrator, None
        if orchestrator is not None:
            orchestrator.teardown()

    # -------------------------------------------------------------- answers
    async def submit_answer(
        self,
        analysis: AnswerAnalysis,
        transcription: TranscriptionResult,
        *,
        audio_duration_seconds: float | None = None,
    ) -> SessionAnswer:
        """Record ``analysis`` for the current question and advance."""

        question = self._require_current()
        duration = (
            audio_duration_seconds
            if audio_duration_seconds is not None
            else analysis.time_management.duration
        )
        answer = SessionAnswer(
            question=question,
            transcription=transcription,
            analysis=analysis,
            audio_duration_seconds=duration,
            skipped=False,
            timestamp=self._clock(),
        )
        await self._append(answer)
        return answer

    async def skip_current_question(self) -> SessionAnswer:
        """Append the skipped placeholder without touching the pipeline."""

        question = self._require_current()
        if self._orchestrator is not None and self._orchestrator.question.id == question.id:
            self._retire_orchestrator()
        answer = SessionAnswer(
            question=question,
            transcription=None,
            analysis=skipped_analysis(),
            audio_duration_seconds=0,
            skipped=True,
            timestamp=self._clock(),
        )
        await self._append(answer)
        logger.info("Question skipped session=%s question=%s", self.session_id, question.id)
        return answer

    async def _append(self, answer: SessionAnswer) -> None:
        record = self.record
        assert record is not None
        record.answers.append(answer)
        record.current_index += 1
        # The answered question's microphone and clock are released before the next one can open them.
        if self._orchestrator is not None and self._orchestrator.question.id == answer.question.id:
            self._retire_orchestrator()
        await self._persist_answer(answer)

    async def _persist_answer(self, answer: SessionAnswer) -> None:
        record = self.record
        assert record is not None
        if not self._persisted:
            logger.debug("Session %s is local-only; answer not persisted", record.session_id)
            return
        try:
            await self._store.save_answer(record.session_id, answer.to_document())
        except Exception as exc:  # noqa: BLE001 - persistence is best-effort
            record.save_error = self._warn("save_answer", exc)

    # ----------------------------------------------------------- completion
    async def complete_session(self) -> SessionResults:
        """Finalize once every question was answered or skipped."""

        record = self._require_record()
        if not record.all_resolved:
            raise SessionStateError(
                f"{len(record.questions) - len(record.answers)} question(s) still unresolved"
            )
        return await self._finalize(SessionStatus.COMPLETED)

    async def exit_session(self) -> SessionResults | None:
        """User-initiated early exit: tear down capture and finalize what exists."""

        self._retire_orchestrator()
        if self.record is None or self.is_finished:
            return self.results
        status = SessionStatus.COMPLETED if self.record.all_resolved else SessionStatus.ABANDONED
        return await self._finalize(status)

    async def _finalize(self, status: SessionStatus) -> SessionResults:
        record = self._require_record()
        if self.is_finished:
            raise SessionStateError("Session already finalized")

        self._retire_orchestrator()
        results = summarize(record, now=self._clock(), status=status)
        record.status = status
        record.end_time = results.end_time
        record.completed_questions = results.completed_questions
        record.average_score = results.average_score
        record.total_duration_seconds = results.total_duration_seconds
        self.results = results

        if self._persisted:
            try:
                await self._store.complete_session(record.session_id, results)
            except Exception as exc:  # noqa: BLE001 - persistence is best-effort
                record.save_error = self._warn("complete_session", exc)

        logger.info(
            "Session %s session=%s completed=%d/%d average=%d duration=%ss",
            status.value,
            record.session_id,
            results.completed_questions,
            results.total_questions,
            results.average_score,
            results.total_duration_seconds,
        )
        return results

    def teardown(self) -> None:
        self._retire_orchestrator()

    # -------------------------------------------------------------- helpers
    def _require_record(self) -> SessionRecord:
        if self.record is None:
            raise SessionStateError("Session not started")
        return self.record

    def _require_current(self) -> Question:
        record = self._require_record()
        if self.is_finished:
            raise SessionStateError("Session already finalized")
        question = record.current_question
        if question is None:
            raise SessionStateError("All questions have been resolved")
        return question

    def _warn(self, operation: str, exc: Exception) -> str:
        message = f"Failed to {operation.replace('_', ' ')}: {exc}"
        logger.warning("Persistence failure (%s): %s", operation, exc)
        record_persistence_failure(operation)
        self.warnings.append(message)
        return message


__all__ = [
    "SessionCoordinator",
    "SessionStateError",
    "skipped_analysis",
    "summarize",
]
