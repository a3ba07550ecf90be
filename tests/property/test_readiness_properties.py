"""Property tests for the readiness endpoint.

Readiness reflects the endpoint pool: 200 iff at least one endpoint is
healthy (above the health threshold and not blocked).
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient
from hypothesis import given, settings, strategies as st

from conftest import make_orchestrator
from embedrelay.proxy.registry import HEALTHY_THRESHOLD
from embedrelay.routers.health import create_health_router


@settings(max_examples=100, deadline=None)
@given(
    failures=st.lists(st.integers(min_value=0, max_value=12), min_size=3, max_size=3),
)
def test_readiness_reflects_endpoint_pool(failures: list[int]) -> None:
    orchestrator = make_orchestrator()
    registry = orchestrator.registry
    for endpoint_id, count in zip(("alpha", "beta", "gamma"), failures):
        for _ in range(count):
            registry.record_outcome(endpoint_id, False)

    healthy = sum(
        1 for record in registry.records()
        if record.health > HEALTHY_THRESHOLD and not record.blocked
    )

    app = FastAPI()
    app.include_router(create_health_router(orchestrator=orchestrator))
    resp = TestClient(app).get("/readiness")
    body = resp.json()

    assert body["data"]["proxy_healthy"] == healthy
    if healthy > 0:
        assert resp.status_code == 200
        assert body["success"] is True
    else:
        assert resp.status_code == 503
        assert body["success"] is False
