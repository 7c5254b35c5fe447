"""High-level map of the answer pipeline.

``AnswerPipelineOrchestrator`` in ``orchestrator.py`` runs the stages; this
module documents the canonical order so contributors can find each one:

1. ``ingestion`` – validate an upload (or finish a live recording) into an artifact.
2. ``capture`` – the recording state machine freezes the elapsed time.
3. ``transcription`` – one speech-to-text round-trip, normalised into a result.
4. ``analysis`` – score the transcript; failures become the fallback analysis.
5. ``coordination`` – append the answer to the session and persist it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class PipelineStage:
    """Human-readable description of one stage in the answer pipeline."""

    order: int
    name: str
    module: str
    summary: str


class AnswerPipeline:
    """Utility wrapper for documenting the answer flow."""

    _STAGES: List[PipelineStage] = [
        PipelineStage(
            1,
            "Ingestion",
            "app.pipelines.answer.ingestion",
            "Resolve the content type and read the upload, rejecting empty or oversized audio.",
        ),
        PipelineStage(
            2,
            "Capture",
            "app.capture.session",
            "Stop (or adopt) the recording and freeze the elapsed-time counter.",
        ),
        PipelineStage(
            3,
            "Transcription",
            "app.services.transcribe",
            "Send the artifact to the speech-to-text service; no speech or errors end the attempt.",
        ),
        PipelineStage(
            4,
            "Analysis",
            "app.services.analysis",
            "Score the transcript against the question; never raises, falls back to zero scores.",
        ),
        PipelineStage(
            5,
            "Coordination",
            "app.services.session_coordinator",
            "Append the answer, advance to the next question and persist the answer record.",
        ),
    ]

    @classmethod
    def describe(cls) -> Iterable[PipelineStage]:
        """Expose the ordered list of stages for debugging and documentation."""

        return tuple(cls._STAGES)


__all__ = ["AnswerPipeline", "PipelineStage"]
