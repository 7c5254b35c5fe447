"""Structured logging middleware for FastAPI requests."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from app.utils import AuthenticationError, decode_access_token

logger = logging.getLogger("app.middleware.structured")

COLOR_RESET = "\u001b[0m"
COLOR_GREEN = "\u001b[32m"
COLOR_CYAN = "\u001b[36m"
COLOR_YELLOW = "\u001b[33m"
COLOR_RED = "\u001b[31m"

_SESSION_PREFIX = "/sessions/"


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one colour-coded summary line per HTTP request."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start_time = time.perf_counter()
        log_payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
            "user_id": self._resolve_user_id(request),
            "session_id": self._resolve_session_id(request.url.path),
        }

        try:
            response = await call_next(request)
        except Exception as exc:  # pragma: no cover - re-raised after logging
            log_payload["status_code"] = 500
            log_payload["duration_ms"] = self._elapsed_ms(start_time)
            log_payload["error"] = repr(exc)
            logger.exception(self._format_console_message(log_payload))
            raise

        log_payload["status_code"] = response.status_code
        log_payload["duration_ms"] = self._elapsed_ms(start_time)
        logger.info(self._format_console_message(log_payload))
        logger.debug(self._to_json(log_payload))
        return response

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        """Return elapsed milliseconds rounded to two decimals."""

        return round((time.perf_counter() - start_time) * 1000, 2)

    @staticmethod
    def _extract_bearer_token(request: Request) -> Optional[str]:
        auth_header = request.headers.get("authorization")
        if not auth_header:
            return None

        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None

        return token

    @classmethod
    def _resolve_user_id(cls, request: Request) -> Optional[str]:
        """Best-effort subject of the bearer token; invalid tokens log as anonymous."""

        token = cls._extract_bearer_token(request)
        if token is None:
            return None
        try:
            return decode_access_token(token).user_id
        except AuthenticationError:
            return None

    @staticmethod
    def _resolve_session_id(path: str) -> Optional[str]:
        if not path.startswith(_SESSION_PREFIX):
            return None
        candidate = path[len(_SESSION_PREFIX):].split("/", 1)[0]
        if not candidate or candidate == "progress":
            return None
        return candidate

    @staticmethod
    def _format_console_message(payload: dict[str, Any]) -> str:
        """Return minimal request metadata wrapped with ANSI color codes."""

        status = payload.get("status_code") or 0
        if 200 <= status < 300:
            color = COLOR_GREEN
        elif 400 <= status < 500:
            color = COLOR_YELLOW
        elif status >= 500:
            color = COLOR_RED
        else:
            color = COLOR_CYAN

        fields = [
            ("method", payload.get("method")),
            ("path", payload.get("path")),
            ("status", status),
            ("duration_ms", payload.get("duration_ms")),
            ("user_id", payload.get("user_id")),
            ("session_id", payload.get("session_id")),
        ]
        message = ", ".join(
            f"{name}={value if value is not None else '-'}" for name, value in fields
        )

        return f"{color}{message}{COLOR_RESET}"

    @staticmethod
    def _to_json(payload: dict[str, Any]) -> str:
        """Serialize payload as compact JSON."""

        return json.dumps(payload, default=str, separators=(",", ":"))
