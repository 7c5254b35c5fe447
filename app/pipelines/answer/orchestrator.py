"""Per-question sequencing of capture, transcription and analysis."""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from app.capture.session import AudioCaptureSession
from app.capture.states import RecordingState
from app.domain.models import AudioArtifact, Question, TranscriptionResult
from app.services.analysis import AnalysisClient
from app.services.transcribe import TranscriptionClient

from .types import AnswerOutcome, PipelinePhase

logger = logging.getLogger("app.services.answer_pipeline")
transcript_logger = logging.getLogger("app.logs.transcript")

ResultCallback = Callable[[AnswerOutcome], Union[None, Awaitable[None]]]

GENERIC_FAILURE_MESSAGE = "We encountered an issue processing your response. Please try again."
INTERRUPTED_MESSAGE = "Processing was interrupted"

_PHASE_BY_CAPTURE_STATE = {
    RecordingState.IDLE: PipelinePhase.IDLE,
    RecordingState.RECORDING: PipelinePhase.RECORDING,
    RecordingState.PAUSED: PipelinePhase.RECORDING,
    RecordingState.STOPPED: PipelinePhase.STOPPED,
    RecordingState.PROCESSING: PipelinePhase.PROCESSING,
    RecordingState.COMPLETED: PipelinePhase.COMPLETED,
}


class PipelineBusyError(RuntimeError):
    """Raised when processing is requested while an attempt is already in flight."""


def describe_failure(message: str | None) -> str:
    """Turn a classified transcription error into a short on-screen message."""

    text = message or ""
    lowered = text.lower()
    if "403" in text or "access denied" in lowered or "api key" in lowered:
        return "API Key Error: Please check your configuration."
    if "network error" in lowered or "failed to fetch" in lowered:
        return "Network Connection Error. Please check your internet."
    if "too large" in lowered:
        return "Recording is too long. Please try a shorter answer."
    if "no speech detected" in lowered:
        return "No speech detected. Please check your microphone."
    return GENERIC_FAILURE_MESSAGE


class AnswerPipelineOrchestrator:
    """Drive one question's recording through transcription and analysis.

    Analysis only runs after a successful transcription, and each attempt
    emits at most one :class:`AnswerOutcome` to ``on_result``. A failed
    transcription returns the capture session to ``stopped`` (artifact kept)
    and reports :attr:`PipelinePhase.FAILED`; the caller may re-process the
    same artifact explicitly or :meth:`reset` and record again. Nothing is
    resubmitted automatically.
    """

    def __init__(
        self,
        question: Question,
        capture: AudioCaptureSession,
        transcription_client: TranscriptionClient,
        analysis_client: AnalysisClient,
        *,
        on_result: Optional[ResultCallback] = None,
    ) -> None:
        self.question = question
        self.capture = capture
        self._transcription = transcription_client
        self._analysis = analysis_client
        self._on_result = on_result
        self._generation = 0
        self._failed = False
        self._in_flight = False
        self.error: str | None = None
        self.display_error: str | None = None
        self.outcome: AnswerOutcome | None = None

    @property
    def phase(self) -> PipelinePhase:
        state = self.capture.state
        if self._failed and state is RecordingState.STOPPED:
            return PipelinePhase.FAILED
        return _PHASE_BY_CAPTURE_STATE[state]

    # -------------------------------------------------------------- capture
    async def start_recording(self) -> None:
        self._clear_error()
        await self.capture.start()

    def toggle_pause(self) -> RecordingState:
        return self.capture.toggle_pause()

    def stop_recording(self) -> AudioArtifact | None:
        return self.capture.stop()

    def reset(self) -> None:
        """Discard the current artifact so the question can be recorded again."""

        self.capture.reset()
        self._clear_error()
        self.outcome = None

    def teardown(self) -> None:
        """Release capture resources and discard any in-flight result."""

        self._generation += 1
        self._in_flight = False
        self.capture.teardown()
        self._clear_error()

    def _clear_error(self) -> None:
        self._failed = False
        self.error = None
        self.display_error = None

    # ----------------------------------------------------------- processing
    async def process(self) -> AnswerOutcome | None:
        """Run transcription then analysis on the current artifact.

        Returns ``None`` when the orchestrator was torn down while a network
        call was pending; that late result is dropped.
        """

        if self._in_flight or self.capture.state is RecordingState.PROCESSING:
            raise PipelineBusyError("This answer is already being processed")

        artifact = self.capture.begin_processing()
        self._clear_error()
        self._in_flight = True
        generation = self._generation
        duration = float(self.capture.elapsed_seconds)
        logger.info(
            "Processing answer question=%s bytes=%d duration=%ss",
            self.question.id,
            artifact.size,
            duration,
        )

        try:
            transcription = await self._transcribe(artifact)
            if generation != self._generation:
                logger.info("Discarding transcription for torn-down question=%s", self.question.id)
                return None

            if not transcription.success:
                return self._fail(transcription, duration)

            transcript_logger.info(
                "question=%s | confidence=%.2f | words=%d | text=%s",
                self.question.id,
                transcription.confidence,
                transcription.word_count,
                transcription.transcript,
            )

            analysis = await self._analysis.analyze(
                transcription.transcript,
                self.question,
                duration,
                transcription.confidence,
            )
            if generation != self._generation:
                logger.info("Discarding analysis for torn-down question=%s", self.question.id)
                return None
        except BaseException:
            if generation == self._generation:
                self._interrupt()
            raise
        finally:
            if generation == self._generation:
                self._in_flight = False

        self.capture.mark_completed()
        outcome = AnswerOutcome(
            question=self.question,
            transcription=transcription,
            analysis=analysis,
            audio_duration_seconds=duration,
        )
        self.outcome = outcome
        logger.info(
            "Answer completed question=%s overall=%s",
            self.question.id,
            analysis.overall_score,
        )
        await self._emit(outcome)
        return outcome

    async def _transcribe(self, artifact: AudioArtifact) -> TranscriptionResult:
        try:
            return await self._transcription.transcribe(artifact)
        except Exception as exc:  # noqa: BLE001 - keep the state machine consistent
            logger.exception("Transcription client raised for question=%s", self.question.id)
            return TranscriptionResult(success=False, error=f"Transcription failed: {exc}")

    def _fail(self, transcription: TranscriptionResult, duration: float) -> AnswerOutcome:
        self.capture.mark_failed()
        self._failed = True
        self.error = transcription.error or "Transcription failed"
        self.display_error = describe_failure(self.error)
        logger.warning(
            "Transcription failed question=%s error=%s",
            self.question.id,
            self.error,
        )
        outcome = AnswerOutcome(
            question=self.question,
            transcription=transcription,
            analysis=None,
            audio_duration_seconds=duration,
            error=self.error,
            display_error=self.display_error,
        )
        self.outcome = outcome
        return outcome

    def _interrupt(self) -> None:
        # Cancellation or an unexpected error must not strand the capture in processing.
        if self.capture.state is RecordingState.PROCESSING:
            self.capture.mark_failed()
        self._failed = True
        self.error = INTERRUPTED_MESSAGE
        self.display_error = GENERIC_FAILURE_MESSAGE
        logger.warning("Processing interrupted question=%s", self.question.id)

    async def _emit(self, outcome: AnswerOutcome) -> None:
        if self._on_result is None:
            return
        result = self._on_result(outcome)
        if inspect.isawaitable(result):
            await result


__all__ = [
    "AnswerPipelineOrchestrator",
    "GENERIC_FAILURE_MESSAGE",
    "INTERRUPTED_MESSAGE",
    "PipelineBusyError",
    "describe_failure",
]
