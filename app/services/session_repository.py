"""PostgreSQL-backed document store for practice sessions."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import session_scope
from app.domain.models import SessionResults, SessionStatus, utc_now
from app.models.practice_session import PracticeSession
from app.models.session_answer import SessionAnswerRecord
from app.models.user_progress import UserProgress
from app.services.document_store import DocumentStoreError, mint_session_id
from app.services.progress import apply_session

logger = logging.getLogger(__name__)


def _session_document(row: PracticeSession) -> dict[str, Any]:
    return {
        "id": row.id,
        "userId": row.user_id,
        "sessionType": row.kind,
        "interviewType": row.session_type,
        "status": row.status,
        "startTime": row.start_time,
        "endTime": row.end_time,
        "totalDuration": row.total_duration,
        "totalQuestions": row.total_questions,
        "completedQuestions": row.completed_questions,
        "averageScore": row.average_score,
        "questions": list(row.questions or []),
    }


def _progress_document(row: UserProgress) -> dict[str, Any]:
    return {
        "userId": row.user_id,
        "totalSessions": row.total_sessions,
        "completedSessions": row.completed_sessions,
        "totalPracticeTime": row.total_practice_minutes,
        "averageScore": row.average_score,
        "lastSessionDate": row.last_session_at,
        "sessionsByType": dict(row.sessions_by_type or {}),
        "skillBreakdown": dict(row.skill_breakdown or {}),
        "streakDays": row.streak_days,
        "bestScore": row.best_score,
        "totalQuestions": row.total_questions,
        "updatedAt": row.updated_at,
    }


async def _require_session(session: AsyncSession, session_id: str) -> PracticeSession:
    row = await session.get(PracticeSession, session_id)
    if row is None:
        raise DocumentStoreError(f"Session {session_id} not found")
    return row


class DatabaseDocumentStore:
    """Persist sessions, answers and progress with async SQLAlchemy."""

    async def create_session(self, user_id: str, kind: str, session_type: str) -> str:
        session_id = mint_session_id(user_id)
        async with session_scope("create practice session") as session:
            session.add(
                PracticeSession(
                    id=session_id,
                    user_id=user_id,
                    kind=kind,
                    session_type=session_type,
                    status=SessionStatus.IN_PROGRESS.value,
                    start_time=utc_now(),
                    questions=[],
                )
            )
            await session.commit()

        logger.info("Session created session=%s user=%s", session_id, user_id)
        return session_id

    async def save_answer(self, session_id: str, answer: Mapping[str, Any]) -> None:
        entry = dict(answer)
        question_id = str(entry.get("questionId"))
        async with session_scope("save answer data") as session:
            row = await _require_session(session, session_id)
            row.questions = [*(row.questions or []), entry]
            await session.merge(
                SessionAnswerRecord(
                    id=f"{session_id}_{question_id}",
                    session_id=session_id,
                    user_id=row.user_id,
                    question_id=question_id,
                    payload=entry,
                )
            )
            await session.commit()

        logger.info("Answer saved session=%s question=%s", session_id, question_id)

    async def complete_session(self, session_id: str, results: SessionResults) -> None:
        async with session_scope("complete session") as session:
            row = await _require_session(session, session_id)
            row.status = results.status.value
            row.end_time = results.end_time
            row.total_duration = results.total_duration_seconds
            row.total_questions = results.total_questions
            row.completed_questions = results.completed_questions
            row.average_score = results.average_score
            user_id = row.user_id
            await session.commit()

        try:
            await self._update_progress(user_id, results)
        except DocumentStoreError:
            logger.exception("Failed to update user progress user=%s", user_id)

        logger.info("Session completed session=%s", session_id)

    async def _update_progress(self, user_id: str, results: SessionResults) -> None:
        async with session_scope("update user progress") as session:
            row = await session.get(UserProgress, user_id)
            current = _progress_document(row) if row is not None else None
            updated = apply_session(current, user_id=user_id, results=results)
            if row is None:
                row = UserProgress(user_id=user_id)
                session.add(row)

            row.total_sessions = updated["totalSessions"]
            row.completed_sessions = updated["completedSessions"]
            row.total_practice_minutes = updated["totalPracticeTime"]
            row.average_score = updated["averageScore"]
            row.best_score = updated["bestScore"]
            row.total_questions = updated["totalQuestions"]
            row.streak_days = updated["streakDays"]
            row.sessions_by_type = updated["sessionsByType"]
            row.skill_breakdown = updated["skillBreakdown"]
            row.last_session_at = updated["lastSessionDate"]
            await session.commit()

    async def get_session(self, session_id: str) -> Optional[dict[str, Any]]:
        async with session_scope("load session") as session:
            row = await session.get(PracticeSession, session_id)
            return _session_document(row) if row is not None else None

    async def get_user_progress(self, user_id: str) -> Optional[dict[str, Any]]:
        async with session_scope("load user progress") as session:
            row = await session.get(UserProgress, user_id)
            return _progress_document(row) if row is not None else None

    async def get_recent_sessions(self, user_id: str, limit: int = 10) -> list[dict[str, Any]]:
        async with session_scope("load recent sessions") as session:
            result = await session.execute(
                select(PracticeSession)
                .where(PracticeSession.user_id == user_id)
                .order_by(PracticeSession.start_time.desc())
                .limit(limit)
            )
            return [_session_document(row) for row in result.scalars().all()]


__all__ = ["DatabaseDocumentStore"]
