"""Middleware package — request IDs, error hierarchy and exception handlers."""

from embedrelay.middleware.error_handler import (
    DispatchFailedError,
    EndpointNotFoundError,
    ProxyUnavailableError,
    RelayError,
    SessionCreationError,
    SessionNotFoundError,
    ValidationError,
    register_error_handlers,
)
from embedrelay.middleware.request_id import RequestIdMiddleware, current_request_id

__all__ = [
    "DispatchFailedError",
    "EndpointNotFoundError",
    "ProxyUnavailableError",
    "RelayError",
    "RequestIdMiddleware",
    "SessionCreationError",
    "SessionNotFoundError",
    "ValidationError",
    "current_request_id",
    "register_error_handlers",
]
