"""On-demand aggregation over the registry and the session store.

``get_proxy_analytics`` sums the registry's records; ``get_detailed_stats``
walks every session. Both are read-only; the O(1) global counters live in
the store.
"""

from __future__ import annotations

from collections import Counter

from embedrelay.models.sessions import ProxyAnalytics
from embedrelay.proxy.registry import HEALTHY_THRESHOLD, ProxyHealthRegistry
from embedrelay.services.session_store import VideoSessionStore


def get_proxy_analytics(registry: ProxyHealthRegistry) -> ProxyAnalytics:
    """Request totals, success rate and healthy/blocked counts across endpoints."""
    records = registry.records()
    total_successes = sum(r.success_count for r in records)
    total_failures = sum(r.failure_count for r in records)
    total_requests = sum(r.total_requests for r in records)

    success_rate = (
        round(total_successes / total_requests * 100, 1) if total_requests > 0 else 0.0
    )

    return ProxyAnalytics(
        total_requests=total_requests,
        total_successes=total_successes,
        total_failures=total_failures,
        success_rate_pct=success_rate,
        healthy_count=sum(
            1 for r in records if r.health > HEALTHY_THRESHOLD and not r.blocked
        ),
        blocked_count=sum(1 for r in records if r.blocked),
    )


def get_detailed_stats(store: VideoSessionStore) -> dict:
    """Global counters plus per-endpoint usage, status counts and averages."""
    global_stats = store.global_stats()
    sessions = store.sessions()

    endpoint_usage = Counter(s.endpoint_id for s in sessions)
    status_counts = Counter(s.status.value for s in sessions)

    total_videos = global_stats.total_videos
    if total_videos > 0:
        average_watch_time = round(global_stats.total_watch_time_sec / total_videos)
        average_views = round(global_stats.total_views / total_videos)
    else:
        average_watch_time = 0
        average_views = 0

    return {
        "global": global_stats.to_dict(),
        "endpoint_usage": dict(endpoint_usage),
        "status_counts": dict(status_counts),
        "average_watch_time_sec": average_watch_time,
        "average_views": average_views,
    }
