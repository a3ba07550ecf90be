"""Unit tests for the request ID middleware."""

from __future__ import annotations

import uuid

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from embedrelay.middleware.request_id import RequestIdMiddleware, current_request_id


def _make_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)

    @app.get("/echo")
    async def echo(request: Request):
        return {
            "state": request.state.request_id,
            "context": current_request_id.get(),
        }

    return app


class TestRequestIdMiddleware:
    def test_generates_id_when_absent(self):
        resp = TestClient(_make_app()).get("/echo")
        request_id = resp.headers["X-Request-ID"]
        uuid.UUID(request_id)
        assert resp.json() == {"state": request_id, "context": request_id}

    def test_propagates_caller_id(self):
        resp = TestClient(_make_app()).get("/echo", headers={"X-Request-ID": "call-42"})
        assert resp.headers["X-Request-ID"] == "call-42"
        assert resp.json()["context"] == "call-42"

    def test_context_cleared_after_call(self):
        TestClient(_make_app()).get("/echo", headers={"X-Request-ID": "call-43"})
        assert current_request_id.get() is None

    def test_distinct_ids_per_call(self):
        client = TestClient(_make_app())
        first = client.get("/echo").headers["X-Request-ID"]
        second = client.get("/echo").headers["X-Request-ID"]
        assert first != second
