"""Speech-to-text client: request shape, normalisation and error classification."""

from __future__ import annotations

import httpx
import pytest

from app.domain.models import AudioArtifact
from app.services.transcribe import (
    INVALID_KEY_MESSAGE,
    NO_SPEECH_MESSAGE,
    RATE_LIMIT_MESSAGE,
    TIMEOUT_MESSAGE,
    TOO_LARGE_MESSAGE,
    classify_error,
    estimate_confidence,
)

from tests.fakes import whisper_client, whisper_status, whisper_text

pytestmark = pytest.mark.anyio


async def test_success_normalises_provider_response(artifact):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("authorization")
        captured["body"] = request.content
        return httpx.Response(
            200,
            json={"text": "  I led the migration to the new platform  ", "language": "english", "duration": 4.0},
        )

    result = await whisper_client(handler).transcribe(artifact)

    assert result.success is True
    assert result.transcript == "I led the migration to the new platform"
    assert result.word_count == 8
    assert result.detected_language == "english"
    assert result.duration_seconds == 4.0
    assert 0.3 <= result.confidence <= 0.95
    assert captured["url"] == "https://whisper.test/v1/audio/transcriptions"
    assert captured["auth"] == "Bearer test-key"
    assert b'name="model"' in captured["body"]
    assert b"whisper-1" in captured["body"]
    assert b"verbose_json" in captured["body"]
    assert b'filename="recording.webm"' in captured["body"]


async def test_auto_language_omits_hint(artifact):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = request.content
        return httpx.Response(200, json={"text": "hello there"})

    await whisper_client(handler, language="auto").transcribe(artifact)

    assert b'name="language"' not in captured["body"]


async def test_empty_text_is_no_speech(artifact):
    result = await whisper_client(whisper_text("   ")).transcribe(artifact)

    assert result.success is False
    assert result.error == NO_SPEECH_MESSAGE
    assert result.transcript == ""
    assert result.confidence == 0.0


async def test_native_confidence_wins(artifact):
    result = await whisper_client(whisper_text("one two three", confidence=0.42)).transcribe(artifact)

    assert result.confidence == pytest.approx(0.42)


async def test_oversized_artifact_fails_before_network():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"text": "never"})

    big = AudioArtifact(data=b"x" * (2 * 1024 * 1024), mime_type="audio/webm")
    result = await whisper_client(handler, max_upload_bytes=1024 * 1024).transcribe(big)

    assert result.success is False
    assert result.error == "Audio file too large: 2.00 MB. Maximum: 1 MB"
    assert calls == []


async def test_empty_artifact_fails_before_network():
    result = await whisper_client(whisper_text("unused")).transcribe(AudioArtifact(data=b"", mime_type="audio/webm"))

    assert result.success is False
    assert "empty" in result.error


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (401, INVALID_KEY_MESSAGE),
        (403, INVALID_KEY_MESSAGE),
        (413, TOO_LARGE_MESSAGE),
        (429, RATE_LIMIT_MESSAGE),
        (500, "Whisper API error: upstream exploded"),
    ],
)
async def test_provider_errors_are_classified(artifact, status_code, expected):
    result = await whisper_client(whisper_status(status_code, "upstream exploded")).transcribe(artifact)

    assert result.success is False
    assert result.error == expected


async def test_transport_errors_never_escape(artifact):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = await whisper_client(handler).transcribe(artifact)

    assert result.success is False
    assert result.error.startswith("Network Error")


async def test_timeout_is_a_failed_transcription(artifact):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    result = await whisper_client(handler).transcribe(artifact)

    assert result.success is False
    assert result.error == TIMEOUT_MESSAGE


async def test_non_json_body_is_a_generic_failure(artifact):
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    result = await whisper_client(handler).transcribe(artifact)

    assert result.success is False
    assert result.error.startswith("Whisper API error")


def test_classify_error_without_message():
    assert classify_error(502) == "Whisper API error: HTTP 502"


@pytest.mark.parametrize(
    ("words", "duration", "expected"),
    [
        (0, 10.0, 0.0),
        (1, 60.0, 0.3),
        (300, 60.0, 0.95),
        (25, 10.0, pytest.approx(0.6)),
    ],
)
def test_estimate_confidence(words, duration, expected):
    assert estimate_confidence(words, duration) == expected
