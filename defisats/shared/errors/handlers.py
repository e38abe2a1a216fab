"""
Centralized error handlers for FastAPI.

Maps domain error families to HTTP responses. Handlers are registered on
base classes; Starlette resolves them along the exception's MRO, so every
context-specific error inherits its status code.
No stack traces or internal details are exposed to clients.
"""

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from defisats.domain.errors import (
    AuthenticationError,
    ConflictError,
    DomainError,
    DomainValidationError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)

HTTP_400 = 400
HTTP_401 = 401
HTTP_403 = 403
HTTP_404 = 404
HTTP_409 = 409
HTTP_500 = 500
HTTP_502 = 502

ERROR_LABELS = {
    HTTP_400: "Validation error",
    HTTP_401: "Unauthorized",
    HTTP_403: "Forbidden",
    HTTP_404: "Not found",
    HTTP_409: "Conflict",
    HTTP_500: "Internal server error",
    HTTP_502: "Upstream service error",
}


def _error_response(
    status_code: int,
    error: str,
    detail: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: dict[str, str | None] = {"error": error}
    if detail:
        body["detail"] = detail
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts)


def register_error_handlers(app: FastAPI) -> None:
    """Register all domain error handlers on the FastAPI application.

    Args:
        app: The FastAPI application instance.
    """

    @app.exception_handler(NotFoundError)
    async def handle_not_found(_request: Request, exc: NotFoundError) -> JSONResponse:
        logger.info("Not found: %s", exc.message)
        return _error_response(HTTP_404, "Not found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(_request: Request, exc: ConflictError) -> JSONResponse:
        logger.info("Conflict: %s", exc.message)
        return _error_response(HTTP_409, "Conflict", exc.message)

    @app.exception_handler(IntegrityError)
    async def handle_integrity(_request: Request, exc: IntegrityError) -> JSONResponse:
        """Unique or foreign key violations that slipped past the repositories."""
        logger.warning("Integrity error: %s", type(exc.orig).__name__)
        return _error_response(HTTP_409, "Conflict", "Resource already exists or is still referenced")

    @app.exception_handler(DomainValidationError)
    async def handle_domain_validation(
        _request: Request, exc: DomainValidationError
    ) -> JSONResponse:
        logger.info("Validation failed: %s", exc.message)
        return _error_response(HTTP_400, "Validation error", exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _error_response(HTTP_400, "Validation error", _format_validation_errors(exc))

    @app.exception_handler(AuthenticationError)
    async def handle_authentication(
        _request: Request, exc: AuthenticationError
    ) -> JSONResponse:
        logger.info("Authentication failed: %s", type(exc).__name__)
        return _error_response(
            HTTP_401, "Unauthorized", exc.message, headers={"WWW-Authenticate": "Bearer"}
        )

    @app.exception_handler(PermissionDeniedError)
    async def handle_permission_denied(
        _request: Request, exc: PermissionDeniedError
    ) -> JSONResponse:
        logger.info("Permission denied: %s", exc.message)
        return _error_response(HTTP_403, "Forbidden", exc.message)

    @app.exception_handler(ExternalServiceError)
    async def handle_external_service(
        _request: Request, exc: ExternalServiceError
    ) -> JSONResponse:
        logger.error("Upstream failure: %s", exc.message)
        return _error_response(HTTP_502, "Upstream service error", exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Framework errors such as unknown routes, in the common shape."""
        phrase = HTTPStatus(exc.status_code).phrase
        error = ERROR_LABELS.get(exc.status_code, phrase)
        detail = str(exc.detail) if exc.detail and exc.detail != phrase else None
        return _error_response(exc.status_code, error, detail, getattr(exc, "headers", None))

    @app.exception_handler(DomainError)
    async def handle_domain(_request: Request, exc: DomainError) -> JSONResponse:
        """Catch-all for domain errors without a more specific family."""
        logger.error("Unhandled domain error: %s", exc.message)
        return _error_response(HTTP_500, "Internal server error")

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected errors. Never exposes internals."""
        logger.exception("Unexpected error: %s", type(exc).__name__)
        return _error_response(HTTP_500, "Internal server error")
