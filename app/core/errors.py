"""
Error taxonomy and API exception handlers.

Every API error is returned as ``{"error": CODE, "message": text}``.
Pipeline errors (provisioning, unsupported formats, broker outages) never
reach a client directly: they are recorded on the job instead.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    error: str
    message: str


class ApiError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class InvalidRequest(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST


class ResourceTooLarge(ApiError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class UnknownReference(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND


class PipelineError(Exception):
    """Base for failures inside a background ingestion job."""


class BrokerUnavailableError(PipelineError):
    pass


class ProvisioningError(PipelineError):
    pass


class UnsupportedFormatError(PipelineError):
    pass


def create_error_response(status_code: int, error: str, message: str) -> JSONResponse:
    payload = ErrorResponse(error=error, message=message)
    return JSONResponse(status_code=status_code, content=payload.model_dump())


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return create_error_response(exc.status_code, exc.code, exc.message)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        loc = ".".join(str(part) for part in error.get("loc", []))
        messages.append(f"{loc}: {error.get('msg', 'invalid')}" if loc else error.get("msg", "invalid"))
    logger.warning("request_validation_failed", extra={"path": request.url.path, "error_count": len(messages)})
    return create_error_response(status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST", "; ".join(messages))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        extra={"path": request.url.path, "method": request.method, "exception_type": type(exc).__name__},
        exc_info=exc,
    )
    return create_error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
