"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import ActionFailedError, error_response, ErrorCodes, status_for
from core.exceptions import BillingError

logger = logging.getLogger(__name__)


def _error_json(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(BillingError)
    async def billing_error_handler(request: Request, exc: BillingError):
        status_code = status_for(exc.code)
        if status_code >= 500:
            logger.error(f"{exc.code}: {exc}")
        return _error_json(status_code, exc.code, str(exc))

    @app.exception_handler(ActionFailedError)
    async def action_failed_handler(request: Request, exc: ActionFailedError):
        status_code = status_for(exc.code)
        if status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}")
        return _error_json(status_code, exc.code, exc.message)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = str(exc)
        if "not found" in message.lower():
            return _error_json(404, ErrorCodes.NOT_FOUND, message)
        return _error_json(400, ErrorCodes.INVALID_REQUEST, message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error_json(422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _error_json(500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
