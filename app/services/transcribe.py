"""Whisper-compatible speech-to-text client.

Every outcome, including transport failures, is normalised into a
:class:`~app.domain.models.TranscriptionResult`; nothing raised by httpx
escapes :meth:`TranscriptionClient.transcribe`.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from app.config.settings import TranscriptionConfig, settings
from app.domain.models import AudioArtifact, TranscriptionResult
from app.telemetry import record_transcription

logger = logging.getLogger(__name__)

TARGET_WORDS_PER_SECOND = 2.5
MIN_ESTIMATED_CONFIDENCE = 0.3
MAX_ESTIMATED_CONFIDENCE = 0.95

NO_SPEECH_MESSAGE = "No speech detected in the audio. Please try speaking more clearly."
INVALID_KEY_MESSAGE = "Invalid OpenAI API key. Please check your transcription configuration."
TOO_LARGE_MESSAGE = "Audio file too large. Please record a shorter response (max 25MB)"
RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please wait a moment and try again"
TIMEOUT_MESSAGE = "Transcription timed out. Please try again."

_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/mp4": "m4a",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/ogg": "ogg",
}


class TranscriptionError(RuntimeError):
    """Raised internally when a transcription attempt cannot produce text."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def estimate_confidence(word_count: int, duration_seconds: float | None) -> float:
    """Heuristic confidence from speech density and length.

    Whisper reports no confidence, so words-per-second (target 2.5) weighs
    60% and absolute word count (saturating at 50) weighs 40%, clamped to
    [0.3, 0.95]. Zero words yields 0.
    """

    if word_count <= 0:
        return 0.0
    if duration_seconds and duration_seconds > 0:
        actual_wps = word_count / duration_seconds
    else:
        actual_wps = TARGET_WORDS_PER_SECOND
    wps_score = min(actual_wps / TARGET_WORDS_PER_SECOND, 1.5) / 1.5
    word_count_score = min(word_count / 50, 1.0)
    confidence = wps_score * 0.6 + word_count_score * 0.4
    return min(max(confidence, MIN_ESTIMATED_CONFIDENCE), MAX_ESTIMATED_CONFIDENCE)


def classify_error(status_code: int, message: str | None = None) -> str:
    """Map a provider HTTP status onto a user-facing message."""

    if status_code in (401, 403):
        return INVALID_KEY_MESSAGE
    if status_code == 413:
        return TOO_LARGE_MESSAGE
    if status_code == 429:
        return RATE_LIMIT_MESSAGE
    return f"Whisper API error: {message or f'HTTP {status_code}'}"


def _provider_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message")
        if isinstance(error, str):
            return error
    return response.reason_phrase or None


class TranscriptionClient:
    """Submit one audio artifact per call; no internal retries."""

    def __init__(
        self,
        config: TranscriptionConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or settings.transcription
        self._transport = transport

    @property
    def max_upload_bytes(self) -> int:
        return self._config.max_upload_bytes

    async def transcribe(
        self,
        artifact: AudioArtifact,
        *,
        language: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> TranscriptionResult:
        started = time.perf_counter()
        try:
            self._validate(artifact)
            payload = await self._request(artifact, language=language, temperature=temperature)
        except TranscriptionError as exc:
            logger.warning("Transcription failed (status=%s): %s", exc.status_code, exc)
            return self._failure(str(exc), started)

        text = str(payload.get("text") or "").strip()
        if not text:
            logger.info("Transcription returned no speech")
            return self._failure(NO_SPEECH_MESSAGE, started)

        word_count = len(text.split())
        duration = payload.get("duration")
        duration = float(duration) if isinstance(duration, (int, float)) else artifact.duration_seconds
        native_confidence = payload.get("confidence")
        if isinstance(native_confidence, (int, float)):
            confidence = max(0.0, min(1.0, float(native_confidence)))
        else:
            confidence = estimate_confidence(word_count, duration)

        result = TranscriptionResult(
            transcript=text,
            confidence=confidence,
            success=True,
            processing_time_ms=self._elapsed_ms(started),
            word_count=word_count,
            detected_language=payload.get("language"),
            duration_seconds=duration,
        )
        record_transcription("success")
        logger.info(
            "Transcription complete words=%d confidence=%.2f duration=%s",
            word_count,
            confidence,
            duration,
        )
        return result

    def _validate(self, artifact: AudioArtifact) -> None:
        if artifact.size == 0:
            raise TranscriptionError("The recorded audio is empty. Please record again.")
        if artifact.size > self._config.max_upload_bytes:
            size_mb = artifact.size / 1024 / 1024
            limit_mb = self._config.max_upload_bytes / 1024 / 1024
            raise TranscriptionError(
                f"Audio file too large: {size_mb:.2f} MB. Maximum: {limit_mb:.0f} MB",
                status_code=413,
            )

    async def _request(
        self,
        artifact: AudioArtifact,
        *,
        language: Optional[str],
        temperature: Optional[float],
    ) -> dict[str, Any]:
        config = self._config
        language = language or config.language
        form: dict[str, str] = {
            "model": config.model,
            "temperature": str(config.temperature if temperature is None else temperature),
            "response_format": config.response_format,
        }
        if language and language != "auto":
            form["language"] = language

        base_type = artifact.mime_type.split(";", 1)[0].strip()
        filename = f"{artifact.filename}.{_EXTENSIONS.get(base_type, 'webm')}"
        files = {"file": (filename, artifact.data, base_type)}

        headers: dict[str, str] = {}
        if config.api_key is not None:
            headers["Authorization"] = f"Bearer {config.api_key.get_secret_value()}"

        logger.info(
            "Sending %d bytes (%s) to %s model=%s language=%s",
            artifact.size,
            base_type,
            config.base_url,
            config.model,
            form.get("language", "auto-detect"),
        )
        async with httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(
                    "/audio/transcriptions",
                    data=form,
                    files=files,
                    headers=headers,
                )
            except httpx.TimeoutException as exc:
                raise TranscriptionError(TIMEOUT_MESSAGE) from exc
            except httpx.RequestError as exc:
                raise TranscriptionError(
                    f"Network Error: unable to reach transcription service ({exc})"
                ) from exc

        if response.status_code >= 400:
            raise TranscriptionError(
                classify_error(response.status_code, _provider_message(response)),
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionError("Whisper API error: invalid response body") from exc
        if not isinstance(payload, dict):
            raise TranscriptionError("Whisper API error: unexpected response shape")
        return payload

    def _failure(self, message: str, started: float) -> TranscriptionResult:
        record_transcription("failure")
        return TranscriptionResult(
            transcript="",
            confidence=0.0,
            success=False,
            error=message,
            processing_time_ms=self._elapsed_ms(started),
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int(round((time.perf_counter() - started) * 1000))


def get_transcription_client() -> TranscriptionClient:
    """Return the process-wide transcription client."""
    return _DEFAULT_CLIENT


_DEFAULT_CLIENT = TranscriptionClient()


__all__ = [
    "INVALID_KEY_MESSAGE",
    "NO_SPEECH_MESSAGE",
    "RATE_LIMIT_MESSAGE",
    "TIMEOUT_MESSAGE",
    "TOO_LARGE_MESSAGE",
    "TranscriptionClient",
    "TranscriptionError",
    "classify_error",
    "estimate_confidence",
    "get_transcription_client",
]
