"""Request ingestion helpers (stage 1 of the answer pipeline)."""

from __future__ import annotations

import mimetypes
from typing import Final

from fastapi import HTTPException, UploadFile, status

from app.domain.models import AudioArtifact

# Browser recorders produce webm/opus first, then mp4; WAV comes from the local recorder.
_ALLOWED_CONTENT_TYPES: Final[set[str]] = {
    "audio/webm",
    "audio/mp4",
    "audio/mpeg",
    "audio/mp3",
    "audio/x-m4a",
    "audio/m4a",
    "audio/wav",
    "audio/x-wav",
    "audio/ogg",
}


def resolve_content_type(audio_file: UploadFile) -> str:
    """Return the base MIME type of the upload, guessing from the filename if needed."""

    content_type = audio_file.content_type
    if (not content_type or content_type == "application/octet-stream") and audio_file.filename:
        guessed_type, _ = mimetypes.guess_type(audio_file.filename)
        content_type = guessed_type or content_type

    content_type = (content_type or "audio/webm").split(";", 1)[0].strip().lower()

    if content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only WebM, MP4/M4A, MP3, OGG or WAV audio is supported",
        )
    return content_type


async def read_audio_artifact(
    audio_file: UploadFile,
    *,
    max_bytes: int,
    duration_seconds: float | None = None,
) -> AudioArtifact:
    """Load the upload into an artifact, rejecting empty or oversized payloads."""

    content_type = resolve_content_type(audio_file)
    audio_bytes = await audio_file.read()
    await audio_file.close()

    if not audio_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded audio file is empty",
        )
    if len(audio_bytes) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=(
                "Audio file too large. Please record a shorter response "
                f"(max {max_bytes // (1024 * 1024)}MB)"
            ),
        )
    return AudioArtifact(
        data=audio_bytes,
        mime_type=content_type,
        duration_seconds=duration_seconds,
    )


__all__ = ["read_audio_artifact", "resolve_content_type"]
