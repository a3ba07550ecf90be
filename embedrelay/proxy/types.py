"""Proxy data models for the health registry and selector."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProxyEndpoint:
    """Static definition of a relay endpoint."""

    id: str
    embed: str | None  # None = virtual "auto" selector, never selectable
    base_health: float = 50.0
    priority: int = 1
    name: str = ""
    icon: str | None = None

    @property
    def is_virtual(self) -> bool:
        return not self.embed


@dataclass
class ProxyHealthRecord:
    """Live health and usage tracking for one non-virtual endpoint."""

    endpoint_id: str
    health: float
    last_used_at: float | None = None  # scheduler clock seconds; None = never used
    success_count: int = 0
    failure_count: int = 0
    consecutive_failures: int = 0
    avg_response_time_ms: float = 0.0
    blocked: bool = False
    blocked_until: float | None = None

    @property
    def total_requests(self) -> int:
        return self.success_count + self.failure_count

    def to_dict(self) -> dict:
        return {
            "endpoint_id": self.endpoint_id,
            "health": self.health,
            "last_used_at": self.last_used_at,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "consecutive_failures": self.consecutive_failures,
            "avg_response_time_ms": self.avg_response_time_ms,
            "total_requests": self.total_requests,
            "blocked": self.blocked,
            "blocked_until": self.blocked_until,
        }
