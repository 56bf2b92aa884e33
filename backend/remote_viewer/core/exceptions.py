"""
Application errors. Each carries an HTTP status and a stable machine-readable code
so API responses can be told apart without parsing the message.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import HTTPException
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(status_code=self.status_code, detail=self.message)

    def __str__(self) -> str:
        return self.message


class ConfigurationError(AppError):
    """Required local folder or remote credentials are not set. Never retried."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "configuration_error"
    default_message = "Not configured"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Conflict"


class ReadOnlyBackendError(AppError):
    status_code = status.HTTP_405_METHOD_NOT_ALLOWED
    code = "read_only_backend"
    default_message = "The remote backend is read-only; remote writes go through the atomic updater"


class ValidationError(AppError):
    status_code = 422
    code = "validation_error"
    default_message = "Invalid schedule"


class MalformedDocumentError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "malformed_document"
    default_message = "Stored document could not be parsed"


class AbortedMissingResourceError(AppError):
    """The current remote document could not be read and the caller refused to
    continue from a default scaffold."""

    status_code = status.HTTP_409_CONFLICT
    code = "aborted_missing_resource"
    default_message = "Remote document could not be read; update aborted to protect existing data"


class TransportError(AppError):
    """Network or authentication failure talking to the remote. Safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "transport_error"
    default_message = "Remote transport failed"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    if exc.status_code >= 500:
        logger.error("%s %s failed [%s]: %s", request.method, request.url.path, exc.code, exc.message)
    else:
        logger.info("%s %s rejected [%s]: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.code, "message": exc.message, "request_id": request_id}},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
