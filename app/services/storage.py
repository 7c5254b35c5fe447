"""Best-effort S3 archival of uploaded answer recordings."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from app.config.settings import settings
from app.domain.models import AudioArtifact

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/mp4": "m4a",
    "audio/m4a": "m4a",
    "audio/x-m4a": "m4a",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/ogg": "ogg",
}


class StorageError(RuntimeError):
    """Raised when a recording cannot be written to S3."""


@lru_cache(maxsize=1)
def _s3_client():
    """Instantiate the S3 client using configured credentials if available."""

    client_kwargs: dict[str, Any] = {"region_name": settings.s3.region}
    if settings.s3.access_key and settings.s3.secret_key:
        client_kwargs["aws_access_key_id"] = settings.s3.access_key
        client_kwargs["aws_secret_access_key"] = settings.s3.secret_key
    return boto3.client("s3", **client_kwargs)


def _object_url(bucket: str, key: str) -> str:
    region = settings.s3.region
    if region == "us-east-1":
        return f"https://{bucket}.s3.amazonaws.com/{key}"
    return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"


def recording_key(session_id: str, question_id: str, mime_type: str) -> str:
    extension = _EXTENSIONS.get(mime_type.split(";", 1)[0].strip().lower(), "webm")
    return f"sessions/{session_id}/answers/{question_id}.{extension}"


async def archive_recording(
    session_id: str,
    question_id: str,
    artifact: AudioArtifact,
) -> str:
    """Upload ``artifact`` under the session prefix and return its URL."""

    if artifact.size == 0:
        raise StorageError("Audio payload for upload was empty.")
    bucket = settings.s3.bucket_name
    if not bucket:
        raise StorageError("S3 bucket name is not configured.")

    object_key = recording_key(session_id, question_id, artifact.mime_type)
    try:
        await run_in_threadpool(
            _s3_client().put_object,
            Bucket=bucket,
            Key=object_key,
            Body=artifact.data,
            ContentType=artifact.mime_type,
        )
    except (BotoCoreError, ClientError) as exc:
        raise StorageError(f"Failed to archive recording: {exc}") from exc

    logger.info("Archived recording session=%s question=%s key=%s", session_id, question_id, object_key)
    return _object_url(bucket, object_key)


async def maybe_archive_recording(
    session_id: str,
    question_id: str,
    artifact: AudioArtifact,
) -> str | None:
    """Archive when enabled; failures are logged and never propagate."""

    if not settings.s3.archive_recordings:
        return None
    try:
        return await archive_recording(session_id, question_id, artifact)
    except StorageError as exc:
        logger.warning("Recording archival skipped session=%s: %s", session_id, exc)
        return None


__all__ = [
    "StorageError",
    "archive_recording",
    "maybe_archive_recording",
    "recording_key",
]
