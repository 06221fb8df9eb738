"""Error taxonomy and FastAPI exception handlers.

Services and routers raise these exceptions; `register_error_handlers`
translates them into JSON responses with a stable payload shape.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CrudError(Exception):
    """Base class for library errors."""

    code: str = "crud_error"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str = "",
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or self.__class__.__name__)
        if code is not None:
            self.code = code
        self.message = message or self.__class__.__name__
        self.details = details


class NotFoundError(CrudError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidArgumentError(CrudError):
    code = "invalid_argument"
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(CrudError):
    code = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(CrudError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class ConfigurationError(CrudError):
    """Fatal misconfiguration. Raised at startup, never handled per request."""

    code = "configuration_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_payload(code: str, message: str, details: object, request_id: str | None):
    return {"code": code, "message": message, "details": details, "request_id": request_id}


def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None) or request.headers.get("x-request-id")
    return str(rid) if rid else "unknown"


def register_error_handlers(app) -> None:
    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.exception(
            "Configuration error on %s %s",
            request.method,
            request.url.path,
            extra={"request_id": _request_id(request)},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(exc.code, exc.message, exc.details, _request_id(request)),
        )

    @app.exception_handler(CrudError)
    async def crud_error_handler(request: Request, exc: CrudError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(exc.code, exc.message, exc.details, _request_id(request)),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [_sanitize(dict(error)) for error in exc.errors()]
        return JSONResponse(
            status_code=422,
            content=_error_payload(
                "validation_error", "Validation error", errors, _request_id(request)
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            extra={"request_id": _request_id(request)},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_payload(
                "internal_error", "Internal server error", None, _request_id(request)
            ),
        )


def _sanitize(value):
    # Validation errors may carry raw input and exception objects.
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, dict):
        return {key: _sanitize(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_sanitize(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)
