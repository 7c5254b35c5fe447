"""Session sequencing, skipping, best-effort persistence and aggregation."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest

from app.capture import AudioCaptureSession, RecordingState
from app.domain.models import (
    AnswerAnalysis,
    Efficiency,
    SessionResults,
    SessionStatus,
    SessionType,
    TranscriptionResult,
)
from app.services.document_store import mint_session_id
from app.services.progress import apply_session, next_streak, round_half_up
from app.services.session_coordinator import (
    SessionCoordinator,
    SessionStateError,
    skipped_analysis,
)
from app.services.session_registry import SessionNotFoundError, SessionRegistry

from tests.fakes import (
    FailingDocumentStore,
    FakeMicrophone,
    RecordingAnalysisClient,
    analysis_payload,
    whisper_client,
    whisper_text,
)

pytestmark = pytest.mark.anyio

START = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Returns ``START`` plus ``step`` seconds more on every call."""

    def __init__(self, step: int = 30) -> None:
        self.calls = 0
        self.step = step

    def __call__(self) -> datetime:
        value = START + timedelta(seconds=self.calls * self.step)
        self.calls += 1
        return value


class CountingTranscriptionClient:
    def __init__(self) -> None:
        self.calls = 0

    async def transcribe(self, artifact):
        self.calls += 1
        return TranscriptionResult(transcript="counted", confidence=0.9, success=True, word_count=1)


def analysis(overall: int) -> AnswerAnalysis:
    return AnswerAnalysis.model_validate(analysis_payload(overall))


def transcription(text: str = "an answer") -> TranscriptionResult:
    return TranscriptionResult(transcript=text, confidence=0.9, success=True, word_count=len(text.split()))


@pytest.fixture
def captures(scheduler):
    created = []

    def factory() -> AudioCaptureSession:
        session = AudioCaptureSession(FakeMicrophone(), scheduler=scheduler, max_duration_seconds=300)
        created.append(session)
        return session

    factory.created = created
    return factory


@pytest.fixture
def coordinator(identity, store, captures):
    return SessionCoordinator(
        identity,
        store,
        CountingTranscriptionClient(),
        RecordingAnalysisClient(),
        capture_factory=captures,
        clock=SteppingClock(),
    )


async def test_start_creates_record_before_first_question(coordinator, store, questions):
    session_id = await coordinator.start_session(SessionType.HR, questions)

    record = coordinator.record
    assert session_id.startswith("session_")
    assert session_id in store.sessions
    assert record.session_id == session_id
    assert record.user_id == "user-1234567890"
    assert record.status is SessionStatus.IN_PROGRESS
    assert record.total_questions == 3
    assert coordinator.current_question.id == "q1"
    assert record.save_error is None


async def test_start_twice_or_without_questions_is_rejected(coordinator, questions):
    with pytest.raises(SessionStateError):
        await coordinator.start_session(SessionType.MIXED, [])
    await coordinator.start_session(SessionType.MIXED, questions)
    with pytest.raises(SessionStateError):
        await coordinator.start_session(SessionType.MIXED, questions)


async def test_answer_skip_answer_aggregates(coordinator, store, questions):
    await coordinator.start_session(SessionType.MIXED, questions)

    await coordinator.submit_answer(analysis(80), transcription(), audio_duration_seconds=40)
    assert coordinator.current_question.id == "q2"
    await coordinator.skip_current_question()
    await coordinator.submit_answer(analysis(70), transcription(), audio_duration_seconds=55)
    assert coordinator.current_question is None

    results = await coordinator.complete_session()

    assert results.total_questions == 3
    assert results.completed_questions == 2
    assert results.average_score == 50
    assert results.status is SessionStatus.COMPLETED
    assert [a.overall_score for a in results.analyses] == [80, 0, 70]
    assert coordinator.record.status is SessionStatus.COMPLETED
    assert coordinator.record.end_time == results.end_time
    assert results.total_duration_seconds > 0

    stored = store.sessions[coordinator.session_id]
    assert stored["status"] == "completed"
    assert stored["averageScore"] == 50
    assert [q["questionId"] for q in stored["questions"]] == ["q1", "q2", "q3"]
    assert stored["questions"][1]["skipped"] is True


async def test_progress_is_folded_in_on_completion(coordinator, store, questions):
    await coordinator.start_session(SessionType.TECHNICAL, questions)
    for score in (60, 70, 81):
        await coordinator.submit_answer(analysis(score), transcription())
    await coordinator.complete_session()

    progress = store.progress["user-1234567890"]
    assert progress["totalSessions"] == 1
    assert progress["averageScore"] == 70
    assert progress["bestScore"] == 70
    assert progress["sessionsByType"] == {"technical": 1}
    assert progress["totalQuestions"] == 3


async def test_skip_never_touches_clients_or_capture(identity, store, questions, captures):
    transcriber = CountingTranscriptionClient()
    analyzer = RecordingAnalysisClient()
    coordinator = SessionCoordinator(
        identity, store, transcriber, analyzer, capture_factory=captures, clock=SteppingClock()
    )
    await coordinator.start_session(SessionType.MIXED, questions)

    answer = await coordinator.skip_current_question()

    assert answer.skipped is True
    assert answer.transcription is None
    assert answer.audio_duration_seconds == 0
    assert transcriber.calls == 0
    assert analyzer.calls == []
    assert captures.created == []


async def test_skip_tears_down_current_capture(coordinator, questions, captures):
    await coordinator.start_session(SessionType.MIXED, questions)
    orchestrator = coordinator.orchestrator()
    await orchestrator.start_recording()
    assert captures.created[0].state is RecordingState.RECORDING

    await coordinator.skip_current_question()

    assert captures.created[0].state is RecordingState.IDLE
    assert captures.created[0].has_live_timer is False
    assert coordinator.orchestrator().question.id == "q2"


async def test_submit_while_recording_releases_the_capture(coordinator, questions, captures, scheduler):
    await coordinator.start_session(SessionType.HR, questions)
    await coordinator.orchestrator().start_recording()
    capture = captures.created[0]
    stream = capture._backend.stream

    await coordinator.submit_answer(analysis(70), transcription())

    assert capture.state is RecordingState.IDLE
    assert capture.has_live_timer is False
    assert stream.released
    assert scheduler.active_timers == []
    assert coordinator.orchestrator().question.id == "q2"
    assert len(captures.created) == 2


def test_skipped_placeholder_contents():
    placeholder = skipped_analysis()

    assert placeholder.overall_score == 0
    assert placeholder.scores.model_dump() == {
        "clarity": 0,
        "relevance": 0,
        "structure": 0,
        "completeness": 0,
        "confidence": 0,
    }
    assert placeholder.feedback.weaknesses == ["Question was skipped"]
    assert placeholder.feedback.detailed_feedback == "This question was skipped during the practice session."
    assert placeholder.key_points.missed == ["All key points - question not attempted"]
    assert placeholder.time_management.efficiency is Efficiency.POOR
    assert placeholder.time_management.pacing == "Question skipped"


async def test_failed_answer_write_keeps_the_session_going(identity, questions):
    store = FailingDocumentStore("save_answer")
    coordinator = SessionCoordinator(
        identity, store, CountingTranscriptionClient(), RecordingAnalysisClient(), clock=SteppingClock()
    )
    await coordinator.start_session(SessionType.MIXED, questions)

    await coordinator.submit_answer(analysis(90), transcription())

    assert len(coordinator.record.answers) == 1
    assert coordinator.current_question.id == "q2"
    assert coordinator.record.save_error == "Failed to save answer: save_answer unavailable"
    assert coordinator.warnings == ["Failed to save answer: save_answer unavailable"]

    await coordinator.skip_current_question()
    await coordinator.submit_answer(analysis(60), transcription())
    results = await coordinator.complete_session()

    assert results.completed_questions == 2
    assert len(coordinator.warnings) == 3
    assert store.sessions[coordinator.session_id]["status"] == "completed"


async def test_failed_create_falls_back_to_local_session(identity, questions):
    store = FailingDocumentStore("create_session")
    coordinator = SessionCoordinator(
        identity, store, CountingTranscriptionClient(), RecordingAnalysisClient(), clock=SteppingClock()
    )

    session_id = await coordinator.start_session(SessionType.MIXED, questions)

    assert re.fullmatch(r"session_\d+_user-123_[0-9a-f]{6}", session_id)
    assert coordinator.record.save_error.startswith("Failed to create session")
    await coordinator.submit_answer(analysis(50), transcription())
    assert store.calls == ["create_session"]
    assert len(coordinator.record.answers) == 1


def test_ids_minted_in_the_same_millisecond_differ():
    first = mint_session_id("user-1234567890", now_ms=1_700_000_000_000)
    second = mint_session_id("user-1234567890", now_ms=1_700_000_000_000)

    assert first != second
    assert re.fullmatch(r"session_1700000000000_user-123_[0-9a-f]{6}", first)


async def test_complete_requires_every_question_resolved(coordinator, questions):
    await coordinator.start_session(SessionType.MIXED, questions)
    await coordinator.submit_answer(analysis(80), transcription())

    with pytest.raises(SessionStateError, match="2 question"):
        await coordinator.complete_session()
    assert coordinator.record.status is SessionStatus.IN_PROGRESS


async def test_exit_early_marks_abandoned(coordinator, store, questions):
    await coordinator.start_session(SessionType.MIXED, questions)
    await coordinator.submit_answer(analysis(80), transcription())

    results = await coordinator.exit_session()

    assert results.status is SessionStatus.ABANDONED
    assert results.completed_questions == 1
    assert results.average_score == 80
    assert coordinator.is_finished
    assert store.sessions[coordinator.session_id]["status"] == "abandoned"
    with pytest.raises(SessionStateError):
        await coordinator.skip_current_question()
    assert await coordinator.exit_session() is results


async def test_exit_before_start_returns_nothing(coordinator):
    assert await coordinator.exit_session() is None


async def test_recorded_answer_flows_into_the_session(identity, store, questions, scheduler, captures):
    analyzer = RecordingAnalysisClient(overall=66)
    coordinator = SessionCoordinator(
        identity,
        store,
        whisper_client(whisper_text("We cut latency in half")),
        analyzer,
        capture_factory=captures,
        clock=SteppingClock(),
    )
    await coordinator.start_session(SessionType.HR, questions)

    orchestrator = coordinator.orchestrator()
    await orchestrator.start_recording()
    captures.created[0]._backend.stream.emit([0.3] * 16)
    scheduler.advance(20)
    orchestrator.stop_recording()
    outcome = await orchestrator.process()

    assert outcome.succeeded
    answer = coordinator.record.answers[0]
    assert answer.question.id == "q1"
    assert answer.analysis.overall_score == 66
    assert answer.audio_duration_seconds == 20.0
    assert answer.transcription.transcript == "We cut latency in half"
    assert coordinator.current_question.id == "q2"
    assert analyzer.calls[0]["duration"] == 20.0
    saved = store.sessions[coordinator.session_id]["questions"][0]
    assert saved["answer"]["transcript"] == "We cut latency in half"
    assert saved["answer"]["wordCount"] == 5


async def test_failed_transcription_does_not_advance(identity, store, questions, scheduler, captures):
    coordinator = SessionCoordinator(
        identity,
        store,
        whisper_client(whisper_text("")),
        RecordingAnalysisClient(),
        capture_factory=captures,
        clock=SteppingClock(),
    )
    await coordinator.start_session(SessionType.HR, questions)
    orchestrator = coordinator.orchestrator()
    await orchestrator.start_recording()
    orchestrator.stop_recording()

    outcome = await orchestrator.process()

    assert not outcome.succeeded
    assert coordinator.record.answers == []
    assert coordinator.current_question.id == "q1"
    assert coordinator.orchestrator() is orchestrator


# --------------------------------------------------------------- progress


@pytest.mark.parametrize(("value", "expected"), [(2.5, 3), (2.4999, 2), (49.5, 50), (0, 0)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def results_with(average: int, completed: int = 2, duration: int = 300) -> SessionResults:
    return SessionResults(
        session_id="s",
        session_type=SessionType.HR,
        total_questions=3,
        completed_questions=completed,
        average_score=average,
        total_duration_seconds=duration,
        analyses=[analysis(average)],
    )


def test_apply_session_first_and_second():
    first = apply_session(None, user_id="u", results=results_with(60), now=START)
    assert first["totalSessions"] == 1
    assert first["totalPracticeTime"] == 5
    assert first["skillBreakdown"]["clarity"] == 60
    assert first["streakDays"] == 1

    second = apply_session(first, user_id="u", results=results_with(81), now=START + timedelta(days=1))
    assert second["totalSessions"] == 2
    assert second["averageScore"] == 71
    assert second["bestScore"] == 81
    assert second["skillBreakdown"]["clarity"] == 71
    assert second["streakDays"] == 2
    assert second["sessionsByType"] == {"hr": 2}
    assert second["totalQuestions"] == 4


def test_streak_resets_after_a_gap():
    assert next_streak(4, START, START + timedelta(days=3)) == 1
    assert next_streak(4, START, START + timedelta(hours=2)) == 4


# --------------------------------------------------------------- registry


async def test_registry_hides_other_users_sessions(coordinator, questions):
    await coordinator.start_session(SessionType.MIXED, questions)
    registry = SessionRegistry()
    session_id = registry.register(coordinator)

    assert registry.get(session_id, "user-1234567890") is coordinator
    with pytest.raises(SessionNotFoundError):
        registry.get(session_id, "someone-else")
    with pytest.raises(SessionNotFoundError):
        registry.get("missing", "user-1234567890")


async def test_registry_evicts_finished_sessions_first(identity, store, questions):
    registry = SessionRegistry(max_sessions=2)
    coordinators = []
    for _ in range(3):
        coordinator = SessionCoordinator(
            identity, store, CountingTranscriptionClient(), RecordingAnalysisClient()
        )
        await coordinator.start_session(SessionType.MIXED, questions)
        coordinators.append(coordinator)

    registry.register(coordinators[0])
    registry.register(coordinators[1])
    await coordinators[1].exit_session()
    registry.register(coordinators[2])

    assert len(registry) == 2
    assert registry.get(coordinators[0].session_id, "user-1234567890") is coordinators[0]
    with pytest.raises(SessionNotFoundError):
        registry.get(coordinators[1].session_id, "user-1234567890")
