"""Common response schemas."""

from typing import Any, Optional, Union

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Shape of every non-2xx JSON body produced by the API."""

    detail: Union[str, dict[str, Any]]
    code: Optional[str] = None


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    401: {"model": ErrorResponse, "description": "Missing or invalid bearer token"},
    404: {"model": ErrorResponse, "description": "Session not found"},
    409: {"model": ErrorResponse, "description": "Operation conflicts with session state"},
}
