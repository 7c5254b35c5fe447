"""Answer pipeline package.

Modules are organised by the order in which one question is processed:

1. `ingestion` – validate an uploaded recording into an audio artifact.
2. `orchestrator` – capture → transcription → analysis for one question.
3. `flow` – human-readable description of the end-to-end stages.

The FastAPI controller and the session coordinator import from here.
"""

from .flow import AnswerPipeline, PipelineStage
from .ingestion import read_audio_artifact, resolve_content_type
from .orchestrator import AnswerPipelineOrchestrator, PipelineBusyError, describe_failure
from .types import AnswerOutcome, PipelinePhase

__all__ = [
    "AnswerOutcome",
    "AnswerPipeline",
    "AnswerPipelineOrchestrator",
    "PipelineBusyError",
    "PipelinePhase",
    "PipelineStage",
    "describe_failure",
    "read_audio_artifact",
    "resolve_content_type",
]
