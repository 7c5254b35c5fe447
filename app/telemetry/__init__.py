"""Telemetry helpers and metrics."""

from .metrics import (
    ANALYSIS_COUNTER,
    ANALYSIS_LATENCY,
    ERROR_COUNTER,
    PERSISTENCE_FAILURES,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    TRANSCRIPTION_COUNTER,
    observe_request,
    record_analysis,
    record_persistence_failure,
    record_transcription,
)

__all__ = [
    "ANALYSIS_COUNTER",
    "ANALYSIS_LATENCY",
    "ERROR_COUNTER",
    "PERSISTENCE_FAILURES",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "TRANSCRIPTION_COUNTER",
    "observe_request",
    "record_analysis",
    "record_persistence_failure",
    "record_transcription",
]
