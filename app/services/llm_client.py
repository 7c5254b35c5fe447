"""Thin async client for the remote answer-scoring model (Gemini proxy)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.config.settings import AnalysisConfig, settings
from app.services.response_contract import extract_candidate_text

logger = logging.getLogger(__name__)


class LlmInvocationError(RuntimeError):
    """Raised when the scoring model cannot be reached or rejects the request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        body: Any = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.reason_phrase or f"HTTP {response.status_code}"


class ScoringLlmClient:
    """POST ``{model, input}`` to the scoring endpoint and return the generated text."""

    def __init__(
        self,
        config: AnalysisConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or settings.analysis
        self._transport = transport

    @property
    def model(self) -> str:
        return self._config.model

    async def invoke(self, prompt: str, *, model: str | None = None) -> str:
        config = self._config
        body = {"model": model or config.model, "input": prompt}
        headers = {"Accept": "application/json"}
        if config.api_key is not None:
            headers["Authorization"] = f"Bearer {config.api_key.get_secret_value()}"

        async with httpx.AsyncClient(
            timeout=config.timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(config.endpoint, json=body, headers=headers)
            except httpx.TimeoutException as exc:
                raise LlmInvocationError("Scoring service timed out") from exc
            except httpx.RequestError as exc:
                raise LlmInvocationError(f"Unable to reach scoring service: {exc}") from exc

        if response.status_code >= 400:
            raise LlmInvocationError(
                f"Scoring service error {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise LlmInvocationError("Scoring service returned a non-JSON body") from exc

        return extract_candidate_text(payload)


__all__ = ["LlmInvocationError", "ScoringLlmClient"]
