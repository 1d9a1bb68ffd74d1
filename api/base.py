"""Unified API response format and error handling."""

from typing import Any
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from utils.request_context import get_request_id
from utils.timezone import now_utc


class APIError(BaseModel):
    """Error details in API response."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")


class APIMeta(BaseModel):
    """Metadata included in every API response."""

    timestamp: datetime = Field(..., description="Response timestamp (UTC)")
    request_id: str = Field(..., description="Unique request identifier for tracing")


class APIResponse(BaseModel):
    """
    Unified response format for all API endpoints.

    Every endpoint returns this structure, making client parsing predictable.
    """

    success: bool
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def _meta() -> APIMeta:
    return APIMeta(timestamp=now_utc(), request_id=get_request_id() or str(uuid4()))


def success_response(data: Any) -> APIResponse:
    """Create a success response."""
    return APIResponse(success=True, data=data, error=None, meta=_meta())


def error_response(code: str, message: str) -> APIResponse:
    """Create an error response."""
    return APIResponse(
        success=False,
        data=None,
        error=APIError(code=code, message=message),
        meta=_meta(),
    )


class ErrorCodes:
    """
    Standard error codes for consistent error handling.

    Billing exceptions carry their own code (see core.exceptions); the
    values here match them.
    """

    # Resource Errors
    NOT_FOUND = "NOT_FOUND"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Stripe
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    REMOTE_SERVICE_ERROR = "REMOTE_SERVICE_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Infrastructure
    INTERNAL_ERROR = "INTERNAL_ERROR"


# HTTP status for each error code; unknown codes are server errors
ERROR_STATUS = {
    ErrorCodes.NOT_FOUND: 404,
    ErrorCodes.VALIDATION_ERROR: 400,
    ErrorCodes.INVALID_REQUEST: 400,
    ErrorCodes.INVALID_SIGNATURE: 400,
    ErrorCodes.REMOTE_SERVICE_ERROR: 502,
    ErrorCodes.CONFIGURATION_ERROR: 503,
    ErrorCodes.INTERNAL_ERROR: 500,
}


def status_for(code: str) -> int:
    return ERROR_STATUS.get(code, 500)


class ActionFailedError(Exception):
    """An operation reported failure in its result instead of raising."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message
