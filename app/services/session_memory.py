"""In-memory document store for tests and database-less deployments."""

from __future__ import annotations

import copy
import logging
from typing import Any, Mapping, Optional

from app.domain.models import SessionResults, SessionStatus, utc_now
from app.services.document_store import DocumentStoreError, mint_session_id
from app.services.progress import apply_session

logger = logging.getLogger(__name__)

_MAX_SESSIONS_PER_USER = 200


class InMemoryDocumentStore:
    """Dict-backed implementation of :class:`~app.services.document_store.DocumentStore`."""

    def __init__(self) -> None:
        self.sessions: dict[str, dict[str, Any]] = {}
        self.answers: dict[str, dict[str, Any]] = {}
        self.progress: dict[str, dict[str, Any]] = {}

    async def create_session(self, user_id: str, kind: str, session_type: str) -> str:
        session_id = mint_session_id(user_id)
        while session_id in self.sessions:
            session_id = mint_session_id(user_id)

        self.sessions[session_id] = {
            "id": session_id,
            "userId": user_id,
            "sessionType": kind,
            "interviewType": session_type,
            "status": SessionStatus.IN_PROGRESS.value,
            "startTime": utc_now(),
            "totalDuration": 0,
            "questions": [],
        }
        self._evict(user_id)
        return session_id

    async def save_answer(self, session_id: str, answer: Mapping[str, Any]) -> None:
        session = self.sessions.get(session_id)
        if session is None:
            raise DocumentStoreError("Session not found")

        entry = dict(answer)
        session["questions"].append(entry)
        answer_id = f"{session_id}_{entry.get('questionId')}"
        self.answers[answer_id] = {
            **entry,
            "sessionId": session_id,
            "userId": session["userId"],
            "createdAt": utc_now(),
        }

    async def complete_session(self, session_id: str, results: SessionResults) -> None:
        session = self.sessions.get(session_id)
        if session is None:
            raise DocumentStoreError("Session not found")

        session.update(
            status=results.status.value,
            endTime=results.end_time,
            totalDuration=results.total_duration_seconds,
            totalQuestions=results.total_questions,
            completedQuestions=results.completed_questions,
            averageScore=results.average_score,
        )

        try:
            user_id = session["userId"]
            self.progress[user_id] = apply_session(
                self.progress.get(user_id), user_id=user_id, results=results
            )
        except Exception:  # pragma: no cover - progress is not critical
            logger.exception("Failed to update user progress for session=%s", session_id)

    async def get_session(self, session_id: str) -> Optional[dict[str, Any]]:
        session = self.sessions.get(session_id)
        return copy.deepcopy(session) if session is not None else None

    async def get_user_progress(self, user_id: str) -> Optional[dict[str, Any]]:
        progress = self.progress.get(user_id)
        return copy.deepcopy(progress) if progress is not None else None

    async def get_recent_sessions(self, user_id: str, limit: int = 10) -> list[dict[str, Any]]:
        owned = [s for s in self.sessions.values() if s["userId"] == user_id]
        owned.sort(key=lambda s: s["startTime"], reverse=True)
        return [copy.deepcopy(s) for s in owned[:limit]]

    def _evict(self, user_id: str) -> None:
        owned = [k for k, s in self.sessions.items() if s["userId"] == user_id]
        for key in owned[:-_MAX_SESSIONS_PER_USER]:
            del self.sessions[key]


__all__ = ["InMemoryDocumentStore"]
