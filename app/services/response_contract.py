"""Validation of the remote scoring service's JSON responses.

The scoring model is asked for a bare JSON object but frequently wraps it
in a Markdown fence or surrounds it with prose; everything here tolerates
that and reports any other deviation as :class:`ResponseContractError`.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from pydantic import ValidationError

from app.domain.models import AnswerAnalysis


class ResponseContractError(RuntimeError):
    """Raised when the scoring response contract cannot be validated."""


def extract_candidate_text(body: Any) -> str:
    """Return the generated text from a Gemini-style ``candidates`` envelope."""

    if not isinstance(body, Mapping):
        raise ResponseContractError("Scoring response body is not a JSON object")

    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        raise ResponseContractError("Scoring response contains no candidates")

    content = candidates[0].get("content") if isinstance(candidates[0], Mapping) else None
    parts = content.get("parts") if isinstance(content, Mapping) else None
    if not isinstance(parts, list) or not parts:
        raise ResponseContractError("Scoring candidate has no content parts")

    texts = [part.get("text", "") for part in parts if isinstance(part, Mapping)]
    text = "".join(t for t in texts if isinstance(t, str)).strip()
    if not text:
        raise ResponseContractError("Scoring candidate text is empty")
    return text


def parse_answer_analysis(payload: str) -> AnswerAnalysis:
    """Parse (possibly fenced) JSON text into an :class:`AnswerAnalysis`.

    ``transcript`` and ``processingTime`` are filled in by the caller.
    """

    cleaned = _clean_json_payload(payload)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ResponseContractError(f"Scoring response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ResponseContractError("Scoring response JSON is not an object")

    try:
        return AnswerAnalysis.model_validate(data)
    except ValidationError as exc:
        raise ResponseContractError(f"Scoring response failed validation: {exc}") from exc


def _clean_json_payload(payload: str) -> str:
    """Strip Markdown code blocks and find the first/last brace to extract JSON."""
    if not payload:
        return ""

    cleaned = payload.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]

    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    cleaned = cleaned.strip()

    start = cleaned.find("{")
    end = cleaned.rfind("}")

    if start != -1 and end != -1 and end > start:
        cleaned = cleaned[start : end + 1]

    return cleaned


__all__ = [
    "ResponseContractError",
    "extract_candidate_text",
    "parse_answer_analysis",
]
