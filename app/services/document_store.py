"""Contract for the external session document store.

Writes are treated as at-least-once and best-effort: stores raise
:class:`DocumentStoreError` and the session coordinator decides whether the
failure is fatal (it never is for the user-facing flow).
"""

from __future__ import annotations

import time
from typing import Any, Mapping, Optional, Protocol
from uuid import uuid4

from app.config.settings import settings
from app.domain.models import SessionResults

SESSION_KIND = "interview"


class DocumentStoreError(RuntimeError):
    """Raised when a document store read or write fails."""


def mint_session_id(user_id: str, now_ms: int | None = None) -> str:
    """``session_<epoch-ms>_<first 8 chars of the user id>_<6 random hex chars>``.

    The random tail keeps ids distinct when one user starts two sessions in
    the same millisecond.
    """

    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"session_{stamp}_{user_id[:8]}_{uuid4().hex[:6]}"


class DocumentStore(Protocol):
    async def create_session(self, user_id: str, kind: str, session_type: str) -> str: ...

    async def save_answer(self, session_id: str, answer: Mapping[str, Any]) -> None: ...

    async def complete_session(self, session_id: str, results: SessionResults) -> None: ...

    async def get_session(self, session_id: str) -> Optional[dict[str, Any]]: ...

    async def get_user_progress(self, user_id: str) -> Optional[dict[str, Any]]: ...

    async def get_recent_sessions(self, user_id: str, limit: int = 10) -> list[dict[str, Any]]: ...


_DEFAULT_STORE: DocumentStore | None = None


def get_document_store() -> DocumentStore:
    """Return the process-wide store selected by ``settings.document_store``."""

    global _DEFAULT_STORE
    if _DEFAULT_STORE is None:
        if settings.document_store == "memory":
            from app.services.session_memory import InMemoryDocumentStore

            _DEFAULT_STORE = InMemoryDocumentStore()
        else:
            from app.services.session_repository import DatabaseDocumentStore

            _DEFAULT_STORE = DatabaseDocumentStore()
    return _DEFAULT_STORE


__all__ = [
    "DocumentStore",
    "DocumentStoreError",
    "SESSION_KIND",
    "get_document_store",
    "mint_session_id",
]
