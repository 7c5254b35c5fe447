"""Service layer helpers for external integrations.

The session coordinator and registry sit above the answer pipeline and are
imported from their own modules.
"""

from .analysis import (
    AnalysisClient,
    QuickFeedback,
    fallback_analysis,
    get_analysis_client,
    quick_feedback,
)
from .document_store import (
    DocumentStore,
    DocumentStoreError,
    get_document_store,
    mint_session_id,
)
from .identity import Identity, IdentityContext, NotAuthenticatedError
from .llm_client import LlmInvocationError, ScoringLlmClient
from .storage import StorageError, maybe_archive_recording
from .transcribe import (
    TranscriptionClient,
    TranscriptionError,
    get_transcription_client,
)

__all__ = [
    "AnalysisClient",
    "QuickFeedback",
    "fallback_analysis",
    "get_analysis_client",
    "quick_feedback",
    "DocumentStore",
    "DocumentStoreError",
    "get_document_store",
    "mint_session_id",
    "Identity",
    "IdentityContext",
    "NotAuthenticatedError",
    "LlmInvocationError",
    "ScoringLlmClient",
    "StorageError",
    "maybe_archive_recording",
    "TranscriptionClient",
    "TranscriptionError",
    "get_transcription_client",
]
