"""Per-question orchestration: ordering, failure branch and teardown."""

from __future__ import annotations

import asyncio

import pytest

from app.capture import AudioCaptureSession, ManualScheduler, RecordingState
from app.domain.models import TranscriptionResult
from app.pipelines.answer import (
    AnswerPipelineOrchestrator,
    PipelineBusyError,
    PipelinePhase,
    describe_failure,
)
from app.pipelines.answer.orchestrator import INTERRUPTED_MESSAGE
from app.services.transcribe import INVALID_KEY_MESSAGE, NO_SPEECH_MESSAGE

from tests.fakes import (
    RecordingAnalysisClient,
    make_questions,
    whisper_client,
    whisper_status,
    whisper_text,
)

pytestmark = pytest.mark.anyio


@pytest.fixture
def question():
    return make_questions(1)[0]


@pytest.fixture
def analysis_client():
    return RecordingAnalysisClient(overall=77)


def build(question, capture, transcription_client, analysis_client):
    emitted = []
    orchestrator = AnswerPipelineOrchestrator(
        question,
        capture,
        transcription_client,
        analysis_client,
        on_result=emitted.append,
    )
    return orchestrator, emitted


async def record(orchestrator, scheduler, microphone, seconds=12):
    await orchestrator.start_recording()
    microphone.stream.emit([0.2] * 32)
    scheduler.advance(seconds)
    orchestrator.stop_recording()


async def test_happy_path_emits_once(question, capture, microphone, scheduler, analysis_client):
    orchestrator, emitted = build(
        question, capture, whisper_client(whisper_text("I shipped the feature early")), analysis_client
    )
    assert orchestrator.phase is PipelinePhase.IDLE

    await record(orchestrator, scheduler, microphone)
    assert orchestrator.phase is PipelinePhase.STOPPED

    outcome = await orchestrator.process()

    assert outcome.succeeded
    assert outcome.analysis.overall_score == 77
    assert outcome.audio_duration_seconds == 12.0
    assert orchestrator.phase is PipelinePhase.COMPLETED
    assert emitted == [outcome]
    assert analysis_client.calls == [
        {
            "transcript": "I shipped the feature early",
            "question": question.id,
            "duration": 12.0,
            "confidence": outcome.transcription.confidence,
        }
    ]


async def test_no_speech_never_reaches_analysis(question, capture, microphone, scheduler, analysis_client):
    orchestrator, emitted = build(question, capture, whisper_client(whisper_text("")), analysis_client)
    await record(orchestrator, scheduler, microphone)

    outcome = await orchestrator.process()

    assert not outcome.succeeded
    assert outcome.error == NO_SPEECH_MESSAGE
    assert outcome.display_error == "No speech detected. Please check your microphone."
    assert analysis_client.calls == []
    assert emitted == []
    assert orchestrator.phase is PipelinePhase.FAILED
    assert capture.state is RecordingState.STOPPED
    assert capture.artifact is not None


async def test_failed_attempt_can_be_reprocessed_explicitly(question, microphone, scheduler, analysis_client):
    responses = iter([whisper_status(401), whisper_text("second time lucky")])
    client = whisper_client(lambda request: next(responses)(request))
    capture = AudioCaptureSession(microphone, scheduler=scheduler)
    orchestrator, emitted = build(question, capture, client, analysis_client)
    await record(orchestrator, scheduler, microphone)

    first = await orchestrator.process()
    assert first.error == INVALID_KEY_MESSAGE
    assert orchestrator.display_error == "API Key Error: Please check your configuration."

    second = await orchestrator.process()
    assert second.succeeded
    assert len(emitted) == 1
    assert orchestrator.error is None


async def test_reset_after_failure_allows_rerecording(question, capture, microphone, scheduler, analysis_client):
    orchestrator, _ = build(question, capture, whisper_client(whisper_text("  ")), analysis_client)
    await record(orchestrator, scheduler, microphone)
    await orchestrator.process()

    orchestrator.reset()

    assert orchestrator.phase is PipelinePhase.IDLE
    assert capture.artifact is None
    assert orchestrator.error is None
    await orchestrator.start_recording()
    assert orchestrator.phase is PipelinePhase.RECORDING


async def test_unexpected_client_exception_takes_failed_branch(question, capture, microphone, scheduler, analysis_client):
    class ExplodingClient:
        async def transcribe(self, artifact):
            raise RuntimeError("boom")

    orchestrator, emitted = build(question, capture, ExplodingClient(), analysis_client)
    await record(orchestrator, scheduler, microphone)

    outcome = await orchestrator.process()

    assert outcome.error == "Transcription failed: boom"
    assert orchestrator.phase is PipelinePhase.FAILED
    assert analysis_client.calls == [] and emitted == []


class GatedTranscriptionClient:
    """Blocks inside ``transcribe`` until released, to model a slow network call."""

    def __init__(self) -> None:
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def transcribe(self, artifact):
        self.calls += 1
        self.entered.set()
        await self.release.wait()
        return TranscriptionResult(transcript="late words", confidence=0.8, success=True, word_count=2)


async def test_processing_cannot_be_reentered(question, capture, microphone, scheduler, analysis_client):
    gated = GatedTranscriptionClient()
    orchestrator, emitted = build(question, capture, gated, analysis_client)
    await record(orchestrator, scheduler, microphone)

    task = asyncio.create_task(orchestrator.process())
    await gated.entered.wait()
    assert orchestrator.phase is PipelinePhase.PROCESSING

    with pytest.raises(PipelineBusyError):
        await orchestrator.process()

    gated.release.set()
    outcome = await task
    assert outcome.succeeded
    assert gated.calls == 1
    assert len(emitted) == 1


async def test_teardown_discards_in_flight_result(question, capture, microphone, scheduler, analysis_client):
    gated = GatedTranscriptionClient()
    orchestrator, emitted = build(question, capture, gated, analysis_client)
    await record(orchestrator, scheduler, microphone)

    task = asyncio.create_task(orchestrator.process())
    await gated.entered.wait()
    orchestrator.teardown()
    assert capture.state is RecordingState.IDLE

    gated.release.set()
    assert await task is None
    assert emitted == []
    assert analysis_client.calls == []
    assert capture.state is RecordingState.IDLE


async def test_cancelled_processing_leaves_artifact_reprocessable(question, capture, microphone, scheduler, analysis_client):
    gated = GatedTranscriptionClient()
    orchestrator, emitted = build(question, capture, gated, analysis_client)
    await record(orchestrator, scheduler, microphone)
    artifact = capture.artifact

    task = asyncio.create_task(orchestrator.process())
    await gated.entered.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert capture.state is RecordingState.STOPPED
    assert capture.artifact is artifact
    assert orchestrator.phase is PipelinePhase.FAILED
    assert orchestrator.error == INTERRUPTED_MESSAGE
    assert emitted == []

    gated.release.set()
    outcome = await orchestrator.process()
    assert outcome.succeeded
    assert gated.calls == 2
    assert emitted == [outcome]


async def test_analysis_exception_does_not_strand_processing(question, capture, microphone, scheduler):
    class BrokenAnalysisClient:
        async def analyze(self, transcript, question, duration, confidence):
            raise RuntimeError("scoring backend exploded")

    orchestrator, emitted = build(question, capture, whisper_client(whisper_text("some words")), BrokenAnalysisClient())
    await record(orchestrator, scheduler, microphone)

    with pytest.raises(RuntimeError):
        await orchestrator.process()

    assert orchestrator.phase is PipelinePhase.FAILED
    assert emitted == []
    orchestrator.reset()
    assert capture.state is RecordingState.IDLE
    assert capture.artifact is None


async def test_async_result_callback_is_awaited(question, microphone, analysis_client):
    received = []

    async def on_result(outcome):
        await asyncio.sleep(0)
        received.append(outcome.question.id)

    scheduler = ManualScheduler()
    orchestrator = AnswerPipelineOrchestrator(
        question,
        AudioCaptureSession(microphone, scheduler=scheduler),
        whisper_client(whisper_text("answer")),
        analysis_client,
        on_result=on_result,
    )
    await record(orchestrator, scheduler, microphone, seconds=3)
    await orchestrator.process()

    assert received == [question.id]


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("Audio file too large: 30.00 MB. Maximum: 25 MB", "Recording is too long. Please try a shorter answer."),
        ("Network Error: unable to reach transcription service", "Network Connection Error. Please check your internet."),
        (INVALID_KEY_MESSAGE, "API Key Error: Please check your configuration."),
        (NO_SPEECH_MESSAGE, "No speech detected. Please check your microphone."),
        ("Whisper API error: teapot", "We encountered an issue processing your response. Please try again."),
        (None, "We encountered an issue processing your response. Please try again."),
    ],
)
def test_describe_failure(message, expected):
    assert describe_failure(message) == expected
