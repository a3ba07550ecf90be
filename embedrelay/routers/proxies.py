"""Proxy endpoint endpoints.

- GET  /api/v1/proxies — every endpoint with its live health
- GET  /api/v1/proxies/analytics — aggregate request/health counters
- GET  /api/v1/proxies/{endpoint_id} — one endpoint
- POST /api/v1/proxies/optimize — run a recovery pass now
- POST /api/v1/proxies/{endpoint_id}/reset — restore baseline health
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter

from embedrelay.middleware.error_handler import EndpointNotFoundError
from embedrelay.models.responses import ok

if TYPE_CHECKING:
    from embedrelay.services.orchestrator import SessionOrchestrator


def create_proxies_router(*, orchestrator: "SessionOrchestrator") -> APIRouter:
    """Factory that creates the proxies router with injected dependencies."""

    proxies_router = APIRouter(prefix="/api/v1/proxies", tags=["proxies"])
    registry = orchestrator.registry

    @proxies_router.get("")
    async def list_proxies() -> dict:
        endpoints = [
            registry.get_endpoint_info(endpoint.id) for endpoint in registry.endpoints
        ]
        return ok(endpoints, count=len(endpoints))

    @proxies_router.get("/analytics")
    async def analytics() -> dict:
        return ok(orchestrator.get_proxy_analytics().to_dict())

    @proxies_router.post("/optimize")
    async def optimize() -> dict:
        """Apply one idle-recovery pass to every endpoint."""
        orchestrator.optimize_all()
        return ok(orchestrator.get_proxy_analytics().to_dict())

    @proxies_router.get("/{endpoint_id}")
    async def get_proxy(endpoint_id: str) -> dict:
        info = registry.get_endpoint_info(endpoint_id)
        if info is None:
            raise EndpointNotFoundError(endpoint_id=endpoint_id)
        return ok(info)

    @proxies_router.post("/{endpoint_id}/reset")
    async def reset_proxy(endpoint_id: str) -> dict:
        if registry.endpoint(endpoint_id) is None:
            raise EndpointNotFoundError(endpoint_id=endpoint_id)
        orchestrator.reset_endpoint(endpoint_id)
        return ok(registry.get_endpoint_info(endpoint_id))

    return proxies_router
