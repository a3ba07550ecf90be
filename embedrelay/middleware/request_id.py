"""Request ID middleware.

Every API call gets an ID: the caller's ``X-Request-ID`` when present, else a
fresh UUID4. The ID is exposed on ``request.state.request_id``, echoed in the
``X-Request-ID`` response header, and bound to :data:`current_request_id`
for the duration of the call so log lines emitted while handling it (session
creation, commands, surface signals) carry it.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

current_request_id: ContextVar[str | None] = ContextVar("current_request_id", default=None)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Assigns, propagates and logs a request ID for each API call."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER.lower()) or str(uuid.uuid4())
        request.state.request_id = request_id

        token = current_request_id.set(request_id)
        try:
            response: Response = await call_next(request)
        finally:
            current_request_id.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
