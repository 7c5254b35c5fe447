"""Per-user progress aggregation applied when a session completes."""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any, Mapping, Sequence

from app.domain.models import AnswerAnalysis, SessionResults, utc_now

SKILLS = ("clarity", "relevance", "structure", "completeness", "confidence")


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive scores (2.5 -> 3), unlike ``round``."""

    return int(math.floor(value + 0.5))


def calculate_skill_breakdown(analyses: Sequence[AnswerAnalysis]) -> dict[str, int]:
    """Mean of each sub-score across ``analyses`` (all zeros when empty)."""

    if not analyses:
        return {skill: 0 for skill in SKILLS}
    return {
        skill: round_half_up(sum(getattr(a.scores, skill) for a in analyses) / len(analyses))
        for skill in SKILLS
    }


def merge_skill_breakdown(
    current: Mapping[str, Any],
    new_skills: Mapping[str, int],
    session_count: int,
) -> dict[str, int]:
    """Weighted merge giving the new session a 1/(n+1) share."""

    weight = session_count / (session_count + 1)
    new_weight = 1 / (session_count + 1)
    return {
        skill: round_half_up(float(current.get(skill, 0) or 0) * weight + new_skills.get(skill, 0) * new_weight)
        for skill in SKILLS
    }


def calculate_new_average(current_average: float, session_count: int, new_score: int) -> int:
    return round_half_up((current_average * session_count + new_score) / (session_count + 1))


def next_streak(previous_streak: int, last_session_at: datetime | None, now: datetime) -> int:
    """Consecutive practice days including ``now``."""

    if last_session_at is None:
        return 1
    last_day = last_session_at.date()
    today = now.date()
    if last_day == today:
        return max(previous_streak, 1)
    if last_day == today - timedelta(days=1):
        return previous_streak + 1
    return 1


def apply_session(
    progress: Mapping[str, Any] | None,
    *,
    user_id: str,
    results: SessionResults,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Return the progress document after folding in one finished session."""

    now = now or utc_now()
    minutes = round_half_up(results.total_duration_seconds / 60)
    session_type = results.session_type.value
    skills = calculate_skill_breakdown(results.analyses)

    if not progress:
        return {
            "userId": user_id,
            "totalSessions": 1,
            "completedSessions": 1,
            "totalPracticeTime": minutes,
            "averageScore": results.average_score,
            "lastSessionDate": now,
            "sessionsByType": {session_type: 1},
            "skillBreakdown": skills,
            "streakDays": 1,
            "bestScore": results.average_score,
            "totalQuestions": results.completed_questions,
            "updatedAt": now,
        }

    completed = int(progress.get("completedSessions", 0) or 0)
    by_type = dict(progress.get("sessionsByType") or {})
    by_type[session_type] = int(by_type.get(session_type, 0)) + 1
    return {
        "userId": user_id,
        "totalSessions": int(progress.get("totalSessions", 0) or 0) + 1,
        "completedSessions": completed + 1,
        "totalPracticeTime": int(progress.get("totalPracticeTime", 0) or 0) + minutes,
        "averageScore": calculate_new_average(
            float(progress.get("averageScore", 0) or 0), completed, results.average_score
        ),
        "lastSessionDate": now,
        "sessionsByType": by_type,
        "skillBreakdown": merge_skill_breakdown(
            progress.get("skillBreakdown") or {}, skills, completed
        ),
        "streakDays": next_streak(
            int(progress.get("streakDays", 0) or 0),
            progress.get("lastSessionDate"),
            now,
        ),
        "bestScore": max(int(progress.get("bestScore", 0) or 0), results.average_score),
        "totalQuestions": int(progress.get("totalQuestions", 0) or 0) + results.completed_questions,
        "updatedAt": now,
    }


__all__ = [
    "SKILLS",
    "apply_session",
    "calculate_new_average",
    "calculate_skill_breakdown",
    "merge_skill_breakdown",
    "next_streak",
    "round_half_up",
]
