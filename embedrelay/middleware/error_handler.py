"""Global error hierarchy and FastAPI exception handlers.

All relay-specific errors extend RelayError. The core (registry, selector,
orchestrator) never lets these escape its public operations; they surface at
the HTTP boundary, where the handlers below turn them into the JSON envelope
{ success, data, error, meta }.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class RelayError(Exception):
    """Base error for all relay-specific errors."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


class ValidationError(RelayError):
    """Payload validation failures — includes field-level details."""

    status_code = 422
    message = "Validation error"


class SessionNotFoundError(RelayError):
    """Session not found."""

    status_code = 404
    message = "Session not found"


class EndpointNotFoundError(RelayError):
    """Proxy endpoint not found."""

    status_code = 404
    message = "Proxy endpoint not found"


class ProxyUnavailableError(RelayError):
    """No selectable proxy endpoint is configured."""

    status_code = 503
    message = "No proxy endpoint available"


class DispatchFailedError(RelayError):
    """Command could not be handed to the embedding surface."""

    status_code = 502
    message = "Command dispatch to embedding surface failed"


class SessionCreationError(RelayError):
    """Session could not be created."""

    status_code = 503
    message = "Session could not be created"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


def _envelope(
    status_code: int,
    error: str,
    meta: dict | None = None,
) -> JSONResponse:
    """Build a JSON envelope error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "error": error,
            "meta": meta,
        },
    )


async def _relay_error_handler(_request: Request, exc: RelayError) -> JSONResponse:
    """Handle RelayError subclasses."""
    meta = exc.details if exc.details else None
    return _envelope(exc.status_code, exc.message, meta=meta)


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI / Pydantic RequestValidationError (422)."""
    field_errors = [
        {
            "field": " -> ".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    return _envelope(
        status_code=422,
        error="Validation error",
        meta={"fields": field_errors},
    )


async def _unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log traceback, return generic 500."""
    logger.error("Unhandled exception: %s", exc, exc_info=exc)
    return _envelope(status_code=500, error="Internal server error")


# ---------------------------------------------------------------------------
# Registration helper
# ---------------------------------------------------------------------------


def register_error_handlers(app: FastAPI) -> None:
    """Wire up all exception handlers on the FastAPI application."""
    app.add_exception_handler(RelayError, _relay_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)  # type: ignore[arg-type]
