"""Application entry point and FastAPI app factory."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .config.settings import settings
from .controllers import sessions
from .database import dispose_engine, init_models
from .middleware import StructuredLoggingMiddleware, TelemetryMiddleware
from .services.session_registry import get_session_registry

logger = logging.getLogger(__name__)

_FULL_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_PIPELINE_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def _rotating_handler(path: str, *, max_bytes: int, fmt: str) -> RotatingFileHandler:
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path,
        maxBytes=max_bytes,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _dedicated_logger(name: str, handler: logging.Handler) -> None:
    dedicated = logging.getLogger(name)
    dedicated.handlers.clear()
    dedicated.addHandler(handler)
    dedicated.setLevel(logging.INFO)


def _configure_logging() -> None:
    """Root logs go to stdout and a file; pipeline and transcripts get their own files."""

    logging.getLogger().handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(_FULL_FORMAT))

    root_logger = logging.getLogger()
    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(_rotating_handler(settings.log_file, max_bytes=1_000_000, fmt=_FULL_FORMAT))
    root_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    middleware_logger = logging.getLogger("app.middleware.structured")
    middleware_logger.handlers.clear()
    middleware_stdout = logging.StreamHandler(sys.stdout)
    middleware_stdout.setFormatter(logging.Formatter("%(message)s"))
    middleware_logger.addHandler(middleware_stdout)
    middleware_logger.setLevel(logging.INFO)
    middleware_logger.propagate = False

    # Both still propagate to the root handlers.
    _dedicated_logger(
        "app.services.answer_pipeline",
        _rotating_handler(settings.pipeline_log_file, max_bytes=500_000, fmt=_PIPELINE_FORMAT),
    )
    _dedicated_logger(
        "app.logs.transcript",
        _rotating_handler(settings.transcript_log_file, max_bytes=500_000, fmt=_PIPELINE_FORMAT),
    )

    noisy_loggers = [
        "botocore",
        "boto3",
        "httpx",
        "httpcore",
        "urllib3",
        "sqlalchemy.engine",
    ]
    for name in noisy_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        description="Interview practice backend: answer transcription, scoring and session tracking",
    )

    app.add_middleware(TelemetryMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.include_router(sessions.router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        """Root endpoint."""

        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "status": "operational",
        }

    @app.get("/health", include_in_schema=False)
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""

        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "documentStore": settings.document_store,
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose application metrics for Prometheus scraping."""

        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    @app.on_event("startup")
    async def startup_event() -> None:
        if settings.document_store == "database":
            await init_models()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        get_session_registry().clear()
        if settings.document_store == "database":
            await dispose_engine()

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
