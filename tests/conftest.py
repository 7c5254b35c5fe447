"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Keep the app factory away from PostgreSQL during tests.
os.environ.setdefault("DOCUMENT_STORE", "memory")

import pytest  # noqa: E402

from app.capture import AudioCaptureSession, ManualScheduler  # noqa: E402
from app.domain.models import AudioArtifact  # noqa: E402
from app.services.identity import Identity, IdentityContext  # noqa: E402
from app.services.session_memory import InMemoryDocumentStore  # noqa: E402

from tests.fakes import FakeMicrophone, make_questions  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def microphone() -> FakeMicrophone:
    return FakeMicrophone()


@pytest.fixture
def capture(microphone: FakeMicrophone, scheduler: ManualScheduler) -> AudioCaptureSession:
    return AudioCaptureSession(
        microphone,
        scheduler=scheduler,
        max_duration_seconds=300,
        auto_stop=True,
    )


@pytest.fixture
def artifact() -> AudioArtifact:
    return AudioArtifact(data=b"RIFF-fake-webm-bytes", mime_type="audio/webm", duration_seconds=42.0)


@pytest.fixture
def identity() -> IdentityContext:
    return IdentityContext(Identity(user_id="user-1234567890", display_name="Ada"))


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def questions():
    return make_questions(3)
