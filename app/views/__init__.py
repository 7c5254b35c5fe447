"""Pydantic schemas used as views in the MVC architecture."""

from .common import ERROR_RESPONSES, ErrorResponse
from .sessions import (
    AnswerFailureDetail,
    AnswerResponse,
    ProgressResponse,
    QuickFeedbackView,
    SessionResultsResponse,
    SessionStateResponse,
    StartSessionRequest,
)

__all__ = [
    "ERROR_RESPONSES",
    "AnswerFailureDetail",
    "AnswerResponse",
    "ErrorResponse",
    "ProgressResponse",
    "QuickFeedbackView",
    "SessionResultsResponse",
    "SessionStateResponse",
    "StartSessionRequest",
]
