"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from typing import Annotated, Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.capture.session import AudioCaptureSession
from app.services.analysis import AnalysisClient, get_analysis_client
from app.services.document_store import DocumentStore, get_document_store
from app.services.identity import IdentityContext
from app.services.session_registry import SessionRegistry, get_session_registry
from app.services.transcribe import TranscriptionClient, get_transcription_client
from app.utils import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)


async def get_identity(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> IdentityContext:
    """Resolve the caller's identity from the bearer token."""

    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return IdentityContext.from_token(credentials.credentials)
    except AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None


def get_capture_factory() -> Callable[[], AudioCaptureSession]:
    """Uploads are adopted into a capture session; no microphone is opened server-side."""

    return AudioCaptureSession


IdentityDep = Annotated[IdentityContext, Depends(get_identity)]
StoreDep = Annotated[DocumentStore, Depends(get_document_store)]
RegistryDep = Annotated[SessionRegistry, Depends(get_session_registry)]
TranscriptionDep = Annotated[TranscriptionClient, Depends(get_transcription_client)]
AnalysisDep = Annotated[AnalysisClient, Depends(get_analysis_client)]
CaptureFactoryDep = Annotated[Callable[[], AudioCaptureSession], Depends(get_capture_factory)]


__all__ = [
    "AnalysisDep",
    "CaptureFactoryDep",
    "IdentityDep",
    "RegistryDep",
    "StoreDep",
    "TranscriptionDep",
    "bearer_scheme",
    "get_capture_factory",
    "get_identity",
]
