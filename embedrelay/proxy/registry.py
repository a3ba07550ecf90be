"""Per-endpoint health registry.

Owns one ``ProxyHealthRecord`` per non-virtual endpoint and the rules that
move it: outcome recording after every load attempt, temporary blocking
after repeated consecutive failures (self-clearing after a cooldown), and
periodic recovery driven by an external scheduler.

Health is a 0–100 heuristic trust score:
- success: +3 (capped at 100), consecutive failures reset, block lifted
- failure: -8 (floored at 0); ``block_threshold`` consecutive failures block
  the endpoint for ``block_cooldown_seconds``
- recovery: +5 for endpoints idle longer than ``recovery_idle_seconds``,
  +2 for endpoints whose successes exceed twice their failures

Unknown endpoint ids are ignored by every operation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from embedrelay.config.endpoints import EndpointCatalog
from embedrelay.proxy.types import ProxyEndpoint, ProxyHealthRecord
from embedrelay.services.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

MAX_HEALTH = 100.0
MIN_HEALTH = 0.0
SUCCESS_BONUS = 3.0
FAILURE_PENALTY = 8.0
IDLE_RECOVERY_BONUS = 5.0
RELIABILITY_BONUS = 2.0
HEALTHY_THRESHOLD = 30.0


def _clamp(value: float) -> float:
    return max(MIN_HEALTH, min(MAX_HEALTH, value))


class ProxyHealthRegistry:
    """Health records for a fixed catalogue of relay endpoints.

    Args:
        endpoints: Static endpoints in catalogue order. Virtual endpoints
            (no embed template) are kept for lookup but get no health record.
        scheduler: Clock and timer source; the unblock cooldown is a timer.
        block_threshold: Consecutive failures that block an endpoint.
        block_cooldown_seconds: How long a block lasts unless a success lifts it.
        recovery_idle_seconds: Idle time after which ``recover`` boosts health.
    """

    def __init__(
        self,
        endpoints: Iterable[ProxyEndpoint],
        scheduler: Scheduler,
        *,
        block_threshold: int = 3,
        block_cooldown_seconds: float = 60.0,
        recovery_idle_seconds: float = 300.0,
    ) -> None:
        self._scheduler = scheduler
        self._block_threshold = block_threshold
        self._block_cooldown_seconds = block_cooldown_seconds
        self._recovery_idle_seconds = recovery_idle_seconds

        self._endpoints: dict[str, ProxyEndpoint] = {}
        self._records: dict[str, ProxyHealthRecord] = {}
        self._unblock_timers: dict[str, TimerHandle] = {}

        for endpoint in endpoints:
            self._endpoints[endpoint.id] = endpoint
            if not endpoint.is_virtual:
                self._records[endpoint.id] = self._baseline(endpoint)

        logger.info(
            "Proxy health registry initialized with %d endpoints (%d selectable)",
            len(self._endpoints),
            len(self._records),
        )

    @classmethod
    def from_catalog(
        cls,
        catalog: EndpointCatalog,
        scheduler: Scheduler,
        *,
        block_threshold: int = 3,
        block_cooldown_seconds: float = 60.0,
        recovery_idle_seconds: float = 300.0,
    ) -> "ProxyHealthRegistry":
        """Build a registry from a loaded endpoint catalogue."""
        endpoints = [
            ProxyEndpoint(
                id=endpoint_id,
                embed=spec.embed,
                base_health=spec.health,
                priority=spec.priority,
                name=spec.name or endpoint_id,
                icon=spec.icon,
            )
            for endpoint_id, spec in catalog.endpoints.items()
        ]
        return cls(
            endpoints,
            scheduler,
            block_threshold=block_threshold,
            block_cooldown_seconds=block_cooldown_seconds,
            recovery_idle_seconds=recovery_idle_seconds,
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def endpoints(self) -> list[ProxyEndpoint]:
        """All static endpoints, virtual ones included, in catalogue order."""
        return list(self._endpoints.values())

    def endpoint(self, endpoint_id: str) -> ProxyEndpoint | None:
        return self._endpoints.get(endpoint_id)

    def get(self, endpoint_id: str) -> ProxyHealthRecord | None:
        return self._records.get(endpoint_id)

    def records(self) -> list[ProxyHealthRecord]:
        return list(self._records.values())

    def is_blocked(self, endpoint_id: str) -> bool:
        record = self._records.get(endpoint_id)
        return bool(record and record.blocked)

    def get_endpoint_info(self, endpoint_id: str) -> dict | None:
        """Static endpoint fields merged with its live health, or None if unknown."""
        endpoint = self._endpoints.get(endpoint_id)
        if endpoint is None:
            return None
        info = {
            "id": endpoint.id,
            "name": endpoint.name,
            "embed": endpoint.embed,
            "priority": endpoint.priority,
            "base_health": endpoint.base_health,
            "icon": endpoint.icon,
        }
        record = self._records.get(endpoint_id)
        if record is not None:
            info.update(record.to_dict())
        return info

    def healthy_endpoints(self) -> list[str]:
        """Ids with health above the healthy threshold and not blocked, best first."""
        healthy = [
            r for r in self._records.values()
            if r.health > HEALTHY_THRESHOLD and not r.blocked
        ]
        healthy.sort(key=lambda r: (-r.health, r.endpoint_id))
        return [r.endpoint_id for r in healthy]

    # ------------------------------------------------------------------
    # Outcome recording
    # ------------------------------------------------------------------

    def record_outcome(
        self, endpoint_id: str, success: bool, response_time_ms: float = 0
    ) -> None:
        """Apply the result of one load attempt through ``endpoint_id``."""
        record = self._records.get(endpoint_id)
        if record is None:
            logger.debug("Ignoring outcome for unknown endpoint %s", endpoint_id)
            return

        try:
            record.last_used_at = self._scheduler.time()
            if success:
                self._apply_success(record, response_time_ms)
            else:
                self._apply_failure(record)
        except Exception:
            logger.exception(
                "Failed to record outcome for endpoint %s",
                endpoint_id,
                extra={"endpoint_id": endpoint_id},
            )

    def _apply_success(self, record: ProxyHealthRecord, response_time_ms: float) -> None:
        record.success_count += 1
        record.consecutive_failures = 0
        record.health = _clamp(record.health + SUCCESS_BONUS)
        if record.blocked:
            logger.info(
                "Endpoint %s unblocked by successful load",
                record.endpoint_id,
                extra={"endpoint_id": record.endpoint_id},
            )
        record.blocked = False
        record.blocked_until = None
        self._cancel_unblock(record.endpoint_id)

        if response_time_ms and response_time_ms > 0:
            if record.avg_response_time_ms == 0:
                record.avg_response_time_ms = float(response_time_ms)
            else:
                record.avg_response_time_ms = (record.avg_response_time_ms + response_time_ms) / 2

    def _apply_failure(self, record: ProxyHealthRecord) -> None:
        record.failure_count += 1
        record.consecutive_failures += 1
        record.health = _clamp(record.health - FAILURE_PENALTY)

        if record.consecutive_failures >= self._block_threshold:
            self._block(record)

    # ------------------------------------------------------------------
    # Blocking
    # ------------------------------------------------------------------

    def _block(self, record: ProxyHealthRecord) -> None:
        """Block (or extend the block of) an endpoint for the cooldown period."""
        self._cancel_unblock(record.endpoint_id)
        record.blocked = True
        record.blocked_until = self._scheduler.time() + self._block_cooldown_seconds
        self._unblock_timers[record.endpoint_id] = self._scheduler.call_later(
            self._block_cooldown_seconds, self._clear_block, record.endpoint_id
        )
        logger.warning(
            "Endpoint %s blocked for %.0fs after %d consecutive failures",
            record.endpoint_id,
            self._block_cooldown_seconds,
            record.consecutive_failures,
            extra={"endpoint_id": record.endpoint_id},
        )

    def _clear_block(self, endpoint_id: str) -> None:
        self._unblock_timers.pop(endpoint_id, None)
        record = self._records.get(endpoint_id)
        if record is None or not record.blocked:
            return
        record.blocked = False
        record.blocked_until = None
        record.consecutive_failures = 0
        logger.info(
            "Endpoint %s block cooldown expired",
            endpoint_id,
            extra={"endpoint_id": endpoint_id},
        )

    def _cancel_unblock(self, endpoint_id: str) -> None:
        timer = self._unblock_timers.pop(endpoint_id, None)
        if timer is not None:
            timer.cancel()

    # ------------------------------------------------------------------
    # Recovery / reset
    # ------------------------------------------------------------------

    def recover(self) -> None:
        """One recovery pass over every record.

        Not self-timed: the service calls this from its periodic optimize loop.
        """
        now = self._scheduler.time()
        for record in self._records.values():
            try:
                idle = (
                    record.last_used_at is None
                    or now - record.last_used_at > self._recovery_idle_seconds
                )
                if idle:
                    record.health = _clamp(record.health + IDLE_RECOVERY_BONUS)
                    if not record.blocked:
                        record.consecutive_failures = max(0, record.consecutive_failures - 1)

                if record.success_count > record.failure_count * 2:
                    record.health = _clamp(record.health + RELIABILITY_BONUS)
            except Exception:
                logger.exception(
                    "Recovery failed for endpoint %s",
                    record.endpoint_id,
                    extra={"endpoint_id": record.endpoint_id},
                )

    def reset(self, endpoint_id: str) -> None:
        """Restore an endpoint's record to its static baseline."""
        endpoint = self._endpoints.get(endpoint_id)
        if endpoint is None or endpoint_id not in self._records:
            return
        self._cancel_unblock(endpoint_id)
        self._records[endpoint_id] = self._baseline(endpoint)
        logger.info("Endpoint %s reset to baseline", endpoint_id, extra={"endpoint_id": endpoint_id})

    @staticmethod
    def _baseline(endpoint: ProxyEndpoint) -> ProxyHealthRecord:
        return ProxyHealthRecord(endpoint_id=endpoint.id, health=_clamp(endpoint.base_health))

    # ------------------------------------------------------------------
    # Stats / metrics
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        """Return per-endpoint statistics for the metrics endpoint."""
        return {
            "total": len(self._records),
            "healthy": len(self.healthy_endpoints()),
            "blocked": sum(1 for r in self._records.values() if r.blocked),
            "endpoints": [r.to_dict() for r in self._records.values()],
        }
