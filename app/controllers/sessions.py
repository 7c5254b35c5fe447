"""Practice-session endpoints.

The browser records each answer and uploads it here. One request to
``POST /sessions/{id}/answers`` runs the whole answer pipeline (see
`app.pipelines.answer.flow.AnswerPipeline`):

1. Validate the upload and adopt it into the question's capture session.
2. Transcribe it; a failed transcription returns 422 and the session stays
   on the same question.
3. Analyse the transcript (a scoring outage yields the fallback analysis).
4. Record the answer, advance, and persist best-effort.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status

from app.capture.states import InvalidTransitionError, RecordingState
from app.controllers.dependencies import (
    AnalysisDep,
    CaptureFactoryDep,
    IdentityDep,
    RegistryDep,
    StoreDep,
    TranscriptionDep,
)
from app.pipelines.answer import AnswerPipeline, PipelineBusyError, read_audio_artifact
from app.services.document_store import DocumentStoreError
from app.services.identity import IdentityContext
from app.services.session_coordinator import SessionCoordinator, SessionStateError
from app.services.session_registry import SessionNotFoundError, SessionRegistry
from app.services.storage import maybe_archive_recording
from app.views import (
    ERROR_RESPONSES,
    AnswerFailureDetail,
    AnswerResponse,
    ProgressResponse,
    QuickFeedbackView,
    SessionResultsResponse,
    SessionStateResponse,
    StartSessionRequest,
)

router = APIRouter(prefix="/sessions", tags=["sessions"], responses=ERROR_RESPONSES)

logger = logging.getLogger(__name__)

PIPELINE_STAGES = tuple(AnswerPipeline.describe())
"""Ordered pipeline metadata used for quick reference and debugging."""

_AUDIO_FILE_UPLOAD = File(...)
_DURATION_FORM = Form(None)


def _lookup(
    registry: SessionRegistry,
    session_id: str,
    identity: IdentityContext,
) -> SessionCoordinator:
    try:
        return registry.get(session_id, identity.user_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        ) from None


def _conflict(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _state_view(coordinator: SessionCoordinator) -> SessionStateResponse:
    record = coordinator.record
    assert record is not None
    return SessionStateResponse(
        session_id=record.session_id,
        session_type=record.session_type,
        status=record.status,
        start_time=record.start_time,
        end_time=record.end_time,
        current_question_index=record.current_index,
        total_questions=len(record.questions),
        current_question=record.current_question if not coordinator.is_finished else None,
        answers=list(record.answers),
        save_error=record.save_error,
        warnings=list(coordinator.warnings),
    )


def _results_view(coordinator: SessionCoordinator) -> SessionResultsResponse:
    assert coordinator.results is not None and coordinator.record is not None
    return SessionResultsResponse(
        results=coordinator.results,
        save_error=coordinator.record.save_error,
        warnings=list(coordinator.warnings),
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def start_session(
    payload: StartSessionRequest,
    identity: IdentityDep,
    store: StoreDep,
    registry: RegistryDep,
    transcription_client: TranscriptionDep,
    analysis_client: AnalysisDep,
    capture_factory: CaptureFactoryDep,
) -> SessionStateResponse:
    """Create a session record and return the first question."""

    coordinator = SessionCoordinator(
        identity,
        store,
        transcription_client,
        analysis_client,
        capture_factory=capture_factory,
    )
    try:
        await coordinator.start_session(payload.session_type, payload.questions)
    except SessionStateError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None

    registry.register(coordinator)
    return _state_view(coordinator)


@router.get("/progress")
async def get_progress(
    identity: IdentityDep,
    store: StoreDep,
    limit: int = 10,
) -> ProgressResponse:
    """Return the caller's aggregate progress and most recent sessions."""

    try:
        progress = await store.get_user_progress(identity.user_id)
        recent = await store.get_recent_sessions(identity.user_id, limit=max(1, min(limit, 50)))
    except DocumentStoreError as exc:
        logger.warning("Progress lookup failed user=%s: %s", identity.user_id, exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress is temporarily unavailable",
        ) from None
    return ProgressResponse(progress=progress, recent_sessions=recent)


@router.get("/{session_id}")
async def get_session_state(
    session_id: str,
    identity: IdentityDep,
    registry: RegistryDep,
) -> SessionStateResponse:
    return _state_view(_lookup(registry, session_id, identity))


@router.post(
    "/{session_id}/answers",
    responses={
        413: {"description": "Recording exceeds the upload limit"},
        422: {"model": AnswerFailureDetail, "description": "Transcription failed"},
    },
)
async def submit_answer(
    session_id: str,
    identity: IdentityDep,
    registry: RegistryDep,
    transcription_client: TranscriptionDep,
    analysis_client: AnalysisDep,
    audio_file: UploadFile = _AUDIO_FILE_UPLOAD,
    duration_seconds: Optional[float] = _DURATION_FORM,
) -> AnswerResponse:
    """Transcribe and analyse one recorded answer for the current question."""

    coordinator = _lookup(registry, session_id, identity)
    if coordinator.is_finished:
        raise _conflict(SessionStateError("Session already finalized"))

    artifact = await read_audio_artifact(
        audio_file,
        max_bytes=transcription_client.max_upload_bytes,
        duration_seconds=duration_seconds,
    )

    async with registry.lock(session_id):
        try:
            orchestrator = coordinator.orchestrator()
        except SessionStateError as exc:
            raise _conflict(exc) from None

        question = orchestrator.question
        try:
            if orchestrator.capture.state in (RecordingState.STOPPED, RecordingState.COMPLETED):
                orchestrator.reset()
            orchestrator.capture.adopt(artifact, duration_seconds)
            outcome = await orchestrator.process()
        except (InvalidTransitionError, PipelineBusyError, SessionStateError) as exc:
            raise _conflict(exc) from None

    if outcome is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Session was closed while the answer was processing",
        )

    if not outcome.succeeded:
        detail = AnswerFailureDetail(
            error=outcome.error or "Transcription failed",
            display_error=outcome.display_error or "",
            question_id=question.id,
        )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail.model_dump(by_alias=True),
        )

    assert outcome.analysis is not None
    recording_url = await maybe_archive_recording(session_id, question.id, artifact)
    quick = analysis_client.quick_feedback(
        outcome.transcription.transcript,
        outcome.audio_duration_seconds,
    )
    return AnswerResponse(
        question_id=question.id,
        transcription=outcome.transcription,
        analysis=outcome.analysis,
        quick_feedback=QuickFeedbackView(
            word_count=quick.word_count,
            words_per_minute=quick.words_per_minute,
            estimated_score=quick.estimated_score,
            quick_tips=quick.quick_tips,
        ),
        recording_url=recording_url,
        session=_state_view(coordinator),
    )


@router.post("/{session_id}/skip")
async def skip_question(
    session_id: str,
    identity: IdentityDep,
    registry: RegistryDep,
) -> SessionStateResponse:
    """Record a zero-score placeholder for the current question and advance."""

    coordinator = _lookup(registry, session_id, identity)
    async with registry.lock(session_id):
        try:
            await coordinator.skip_current_question()
        except SessionStateError as exc:
            raise _conflict(exc) from None
    return _state_view(coordinator)


@router.post("/{session_id}/complete")
async def complete_session(
    session_id: str,
    identity: IdentityDep,
    registry: RegistryDep,
) -> SessionResultsResponse:
    """Finalize a session whose questions are all answered or skipped."""

    coordinator = _lookup(registry, session_id, identity)
    async with registry.lock(session_id):
        try:
            await coordinator.complete_session()
        except SessionStateError as exc:
            raise _conflict(exc) from None
    return _results_view(coordinator)


@router.delete("/{session_id}")
async def exit_session(
    session_id: str,
    identity: IdentityDep,
    registry: RegistryDep,
) -> SessionResultsResponse:
    """Leave early: discard any in-flight answer and finalize what was recorded."""

    coordinator = _lookup(registry, session_id, identity)
    # No lock here, so an answer still processing is torn down instead of awaited.
    await coordinator.exit_session()
    response = _results_view(coordinator)
    registry.discard(session_id)
    return response


__all__ = ["router"]
