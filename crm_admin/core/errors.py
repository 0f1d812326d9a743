from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Unspecified error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message is not None:
            self.message = message


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"


class AuthenticationError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized"


class PermissionDenied(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Access denied"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Resource not found"


class ConfigurationError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Missing configuration"


class ExternalServiceError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "External service call failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        service: str | None = None,
        upstream_status: int | None = None,
        body_text: str | None = None,
    ):
        super().__init__(message)
        self.service = service
        self.upstream_status = upstream_status
        self.body_text = body_text


class InternalError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal error"


async def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "service error status=%s endpoint=%s %s error=%s",
        exc.status_code,
        request.method,
        request.url.path,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        details.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    message = "; ".join(details) or "Invalid request"
    logger.warning("request validation failed endpoint=%s %s error=%s", request.method, request.url.path, message)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, _service_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
