# This file defines consistent API error payloads and exception handlers.
# It exists so every endpoint returns the same error shape with request trace fields.
# Engine errors are mapped to stable error codes; unexpected failures become safe 500 responses.
# Centralized error handling prevents stack traces from leaking in production responses.

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.occupancy_pricing.errors import (
    ConfigurationError,
    ImportValidationError,
    InvalidTransitionError,
    ParseFailure,
    PersistenceError,
    PriceListNotFoundError,
    PricingEngineError,
    UnsupportedFileTypeError,
)

LOGGER = logging.getLogger("occupancy_pricing.api")

# Subclasses precede their bases; the first isinstance match wins.
ENGINE_ERROR_CODES: tuple[tuple[type[PricingEngineError], int, str], ...] = (
    (ConfigurationError, 422, "CONFIGURATION_ERROR"),
    (ImportValidationError, 409, "IMPORT_HAS_ERRORS"),
    (UnsupportedFileTypeError, 415, "UNSUPPORTED_FILE_TYPE"),
    (ParseFailure, 400, "PARSE_FAILURE"),
    (InvalidTransitionError, 409, "INVALID_TRANSITION"),
    (PriceListNotFoundError, 404, "NOT_FOUND"),
    (PersistenceError, 503, "PERSISTENCE_ERROR"),
)


class APIError(Exception):
    """Domain error type with structured API details."""

    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        details: Any | None = None,
    ) -> None:
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details
        super().__init__(message)


def _request_id(request: Request) -> str:
    return str(getattr(request.state, "request_id", "unknown"))


def _error_body(
    *, request: Request, error_code: str, message: str, details: Any | None = None
) -> dict[str, Any]:
    return {
        "error_code": error_code,
        "message": message,
        "details": details,
        "request_id": _request_id(request),
        "timestamp": datetime.now(tz=UTC).isoformat(),
    }


def engine_error_status(exc: PricingEngineError) -> tuple[int, str]:
    for error_type, status_code, error_code in ENGINE_ERROR_CODES:
        if isinstance(exc, error_type):
            return status_code, error_code
    return 500, "ENGINE_ERROR"


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(
                request=request,
                error_code=exc.error_code,
                message=exc.message,
                details=exc.details,
            ),
        )

    @app.exception_handler(PricingEngineError)
    async def engine_error_handler(request: Request, exc: PricingEngineError) -> JSONResponse:
        status_code, error_code = engine_error_status(exc)
        if status_code >= 500:
            LOGGER.error("engine failure request_id=%s error=%s", _request_id(request), exc)
        return JSONResponse(
            status_code=status_code,
            content=_error_body(
                request=request,
                error_code=error_code,
                message=str(exc),
                details=exc.details,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=_error_body(
                request=request,
                error_code="VALIDATION_ERROR",
                message="Invalid request parameters.",
                details=exc.errors(),
            ),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(
                request=request,
                error_code="HTTP_ERROR",
                message=str(exc.detail),
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.exception("unhandled error request_id=%s", _request_id(request), exc_info=exc)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                request=request,
                error_code="INTERNAL_SERVER_ERROR",
                message="The server encountered an unexpected error.",
            ),
        )
