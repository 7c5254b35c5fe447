"""Request metrics middleware for the practice API."""

from __future__ import annotations

import time
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from app.telemetry import observe_request

# Prometheus scrapes are not user traffic.
_UNTRACKED_PATHS = frozenset({"/metrics"})

UNMATCHED_ROUTE = "unmatched"


class TelemetryMiddleware(BaseHTTPMiddleware):
    """Count and time each request, labelled by route template.

    Session ids stay out of the labels: ``/sessions/abc/answers`` is recorded
    as ``/sessions/{session_id}/answers`` and unknown paths share one label.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path in _UNTRACKED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            observe_request(request.method, self._route_label(request), 500, time.perf_counter() - started)
            raise

        observe_request(
            request.method,
            self._route_label(request),
            response.status_code,
            time.perf_counter() - started,
        )
        return response

    @staticmethod
    def _route_label(request: Request) -> str:
        # The router stores the matched route in the scope once routing ran.
        matched: Any = request.scope.get("route")
        path = getattr(matched, "path", None)
        return path or UNMATCHED_ROUTE


__all__ = ["TelemetryMiddleware", "UNMATCHED_ROUTE"]
