#!/usr/bin/env python3
"""
Terminal practice session against the live microphone.

Records each answer with sounddevice, draws the waveform as a bar strip,
and runs the same coordinator the API uses (in-memory store, no login).

Usage: python scripts/practice_console.py [questions.json]
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Sequence

sys.path.append(os.getcwd())

from app.capture import AudioCaptureSession, CaptureError, SoundDeviceMicrophone, WaveformMonitor
from app.domain.models import Question, SessionType
from app.pipelines.answer import PipelinePhase
from app.services.analysis import get_analysis_client
from app.services.identity import Identity, IdentityContext
from app.services.session_coordinator import SessionCoordinator
from app.services.session_memory import InMemoryDocumentStore
from app.services.transcribe import get_transcription_client

BAR_GLYPHS = " ▁▂▃▄▅▆▇█"
STRIP_WIDTH = 60

DEFAULT_QUESTIONS = [
    {
        "id": "console-1",
        "question": "Tell me about a time you had to resolve a conflict within your team.",
        "type": "behavioral",
        "skills": ["communication", "conflict resolution"],
        "expectedDuration": 120,
    },
    {
        "id": "console-2",
        "question": "How would you design a rate limiter for a public API?",
        "type": "technical",
        "skills": ["system design"],
        "expectedDuration": 180,
    },
]


class ConsoleWaveform:
    def __init__(self, session: AudioCaptureSession) -> None:
        self._session = session

    def render(self, history: Sequence[float]) -> None:
        tail = history[-STRIP_WIDTH:]
        strip = "".join(BAR_GLYPHS[min(int(a * (len(BAR_GLYPHS) - 1)), len(BAR_GLYPHS) - 1)] for a in tail)
        sys.stdout.write(f"\r{self._session.format_elapsed()} {strip}")
        sys.stdout.flush()


async def ask(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    answer = await loop.run_in_executor(None, input, prompt)
    return answer.strip().lower()


def load_questions(path: str | None) -> list[Question]:
    raw = DEFAULT_QUESTIONS
    if path:
        with open(path, "r", encoding="utf-8") as fp:
            raw = json.load(fp)
    return [Question.model_validate(item) for item in raw]


async def run_question(coordinator: SessionCoordinator) -> bool:
    """Return False when the user quits."""

    question = coordinator.current_question
    orchestrator = coordinator.orchestrator()
    capture = orchestrator.capture
    monitor = WaveformMonitor(capture, renderer=ConsoleWaveform(capture), fps=20)
    print(f"\nQ{coordinator.record.current_index + 1}: {question.text}")

    try:
        while True:
            command = await ask("[enter] record  [s] skip  [q] quit > ")
            if command == "q":
                return False
            if command == "s":
                await coordinator.skip_current_question()
                print("Skipped.")
                return True

            try:
                await orchestrator.start_recording()
            except CaptureError as exc:
                print(f"Microphone unavailable: {exc}")
                continue

            while capture.is_active:
                command = await ask("")
                if command == "p":
                    capture.toggle_pause()
                    print(f"\n{capture.state.value}")
                else:
                    orchestrator.stop_recording()
            print(f"\nRecorded {capture.format_elapsed()}. Processing...")

            while True:
                outcome = await orchestrator.process()
                if outcome is not None and outcome.succeeded:
                    analysis = outcome.analysis
                    print(f"Score: {analysis.overall_score}/100")
                    print(analysis.feedback.detailed_feedback)
                    return True
                print(orchestrator.display_error)
                if orchestrator.phase is not PipelinePhase.FAILED:
                    break
                retry = await ask("[r] retry this recording  [n] record again > ")
                if retry != "r":
                    orchestrator.reset()
                    break
    finally:
        monitor.close()


async def main() -> None:
    questions = load_questions(sys.argv[1] if len(sys.argv) > 1 else None)
    identity = IdentityContext(Identity(user_id=os.getenv("USER", "console-user")))
    microphone = SoundDeviceMicrophone()
    coordinator = SessionCoordinator(
        identity,
        InMemoryDocumentStore(),
        get_transcription_client(),
        get_analysis_client(),
        capture_factory=lambda: AudioCaptureSession(microphone),
    )
    await coordinator.start_session(SessionType.MIXED, questions)

    while coordinator.current_question is not None:
        if not await run_question(coordinator):
            break

    results = await coordinator.exit_session()
    print("\n--- Session Results ---")
    print(
        f"status={results.status.value} answered={results.completed_questions}/"
        f"{results.total_questions} average={results.average_score} "
        f"duration={results.total_duration_seconds}s"
    )
    for warning in coordinator.warnings:
        print(f"warning: {warning}")


if __name__ == "__main__":
    asyncio.run(main())
