"""Health, readiness, and metrics endpoints.

- GET /health — service status + session and endpoint summary
- GET /readiness — 200 only when at least one endpoint is healthy
- GET /metrics — operational metrics
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Response

from embedrelay.models.responses import ApiResponse

if TYPE_CHECKING:
    from embedrelay.services.orchestrator import SessionOrchestrator


def create_health_router(
    *,
    orchestrator: "SessionOrchestrator | None" = None,
    sink: Any = None,
) -> APIRouter:
    """Factory that creates the health router with injected dependencies."""

    health_router = APIRouter(tags=["health"])

    @health_router.get("/health")
    async def health() -> dict:
        """Service health check with session and endpoint summary."""
        global_stats = orchestrator.get_global_stats().to_dict() if orchestrator else {}
        analytics = orchestrator.get_proxy_analytics().to_dict() if orchestrator else {}

        return ApiResponse(
            success=True,
            data={
                "status": "healthy",
                "sessions": global_stats,
                "proxy_pool": analytics,
            },
        ).model_dump()

    @health_router.get("/readiness")
    async def readiness(response: Response) -> dict:
        """Readiness probe — 200 iff at least one endpoint is healthy."""
        healthy = orchestrator.get_proxy_analytics().healthy_count if orchestrator else 0
        is_ready = healthy > 0

        if not is_ready:
            response.status_code = 503

        return ApiResponse(
            success=is_ready,
            data={"ready": is_ready, "proxy_healthy": healthy},
            error=None if is_ready else "Service not ready",
        ).model_dump()

    @health_router.get("/metrics")
    async def metrics() -> dict:
        """Operational metrics endpoint."""
        proxy_stats = orchestrator.registry.get_stats() if orchestrator else {}
        global_stats = orchestrator.get_global_stats().to_dict() if orchestrator else {}
        in_flight = getattr(sink, "in_flight", 0)

        return ApiResponse(
            success=True,
            data={
                "sessions": global_stats,
                "proxy_pool": proxy_stats,
                "observers": orchestrator.bus.subscriber_count if orchestrator else 0,
                "surface_in_flight": in_flight,
            },
        ).model_dump()

    return health_router
