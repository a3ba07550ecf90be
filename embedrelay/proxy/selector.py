"""Score-based endpoint selection over the health registry.

Each eligible endpoint (has an embed template, not excluded, not blocked) is
scored as a weighted sum:

    0.30 * health
  + 0.25 * success rate (0-100; 50 for untested endpoints)
  + 0.20 * load balance (seconds idle / 10, capped at 50)
  + 0.15 * failure penalty (20 - 10 per consecutive failure, floored at 0)
  + 0.10 * speed (30 - avg response seconds, floored at 0; 15 if untested)

The highest score wins; equal scores go to the lowest endpoint id. With no
eligible endpoint the first non-virtual endpoint of the catalogue is
returned as a degraded fallback.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from embedrelay.middleware.error_handler import ProxyUnavailableError
from embedrelay.proxy.registry import ProxyHealthRegistry
from embedrelay.proxy.types import ProxyHealthRecord

logger = logging.getLogger(__name__)

HEALTH_WEIGHT = 0.30
SUCCESS_WEIGHT = 0.25
LOAD_BALANCE_WEIGHT = 0.20
FAILURE_WEIGHT = 0.15
SPEED_WEIGHT = 0.10

NEUTRAL_SUCCESS_RATE = 0.5
LOAD_BALANCE_CAP = 50.0
LOAD_BALANCE_DIVISOR_SECONDS = 10.0
NEUTRAL_SPEED = 15.0


class ProxySelector:
    """Stateless chooser reading a :class:`ProxyHealthRegistry`."""

    def __init__(self, registry: ProxyHealthRegistry) -> None:
        self._registry = registry

    def score(self, record: ProxyHealthRecord, now: float | None = None) -> float:
        """Weighted desirability of one endpoint at time ``now``."""
        if now is None:
            now = self._registry.scheduler.time()

        total = record.total_requests
        success_rate = record.success_count / total if total > 0 else NEUTRAL_SUCCESS_RATE

        if record.last_used_at is None:
            load_balance = LOAD_BALANCE_CAP
        else:
            idle = max(0.0, now - record.last_used_at)
            load_balance = min(idle / LOAD_BALANCE_DIVISOR_SECONDS, LOAD_BALANCE_CAP)

        failure_penalty = max(0.0, 20.0 - 10.0 * record.consecutive_failures)

        if record.avg_response_time_ms > 0:
            speed = max(0.0, 30.0 - record.avg_response_time_ms / 1000.0)
        else:
            speed = NEUTRAL_SPEED

        return (
            HEALTH_WEIGHT * record.health
            + SUCCESS_WEIGHT * success_rate * 100.0
            + LOAD_BALANCE_WEIGHT * load_balance
            + FAILURE_WEIGHT * failure_penalty
            + SPEED_WEIGHT * speed
        )

    def candidates(self, exclude_ids: Iterable[str] = ()) -> list[str]:
        """Ids eligible for selection, in catalogue order."""
        excluded = set(exclude_ids)
        eligible = []
        for endpoint in self._registry.endpoints:
            if endpoint.is_virtual or endpoint.id in excluded:
                continue
            record = self._registry.get(endpoint.id)
            if record is None or record.blocked:
                continue
            eligible.append(endpoint.id)
        return eligible

    def select_optimal(self, exclude_ids: Iterable[str] = ()) -> str:
        """Return the id of the best endpoint, or the degraded fallback.

        Raises ``ProxyUnavailableError`` only when the catalogue has no
        non-virtual endpoint at all.
        """
        excluded = list(exclude_ids)
        eligible = self.candidates(excluded)

        if not eligible:
            fallback = self.fallback()
            logger.warning(
                "No eligible endpoint (excluded=%s) — falling back to %s",
                excluded,
                fallback,
                extra={"endpoint_id": fallback},
            )
            return fallback

        now = self._registry.scheduler.time()
        scored = [
            (self.score(self._registry.get(endpoint_id), now), endpoint_id)  # type: ignore[arg-type]
            for endpoint_id in eligible
        ]
        scored.sort(key=lambda item: (-item[0], item[1]))
        best_score, best_id = scored[0]
        logger.debug("Selected endpoint %s (score=%.2f)", best_id, best_score)
        return best_id

    def fallback(self) -> str:
        """First non-virtual endpoint of the catalogue."""
        for endpoint in self._registry.endpoints:
            if not endpoint.is_virtual:
                return endpoint.id
        raise ProxyUnavailableError("No non-virtual endpoint configured")
