"""In-memory video session store and global counters.

The store owns every ``VideoSession`` record and the ``GlobalStats``
counters. Counters are bumped by the same call that performs the
triggering change (add, remove, tick accrual, tick start/stop) so reading
them never requires a scan. All state is process-lifetime only.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import replace

from embedrelay.models.sessions import GlobalStats, VideoSession

logger = logging.getLogger(__name__)


class VideoSessionStore:
    """Session records keyed by id plus the running global counters."""

    def __init__(self) -> None:
        self._sessions: dict[str, VideoSession] = {}
        self._stats = GlobalStats()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def add(self, session: VideoSession) -> None:
        if session.id in self._sessions:
            raise ValueError(f"Duplicate session id: {session.id}")
        self._sessions[session.id] = session
        self._stats.total_videos += 1

    def get(self, session_id: str) -> VideoSession | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> VideoSession | None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            self._stats.total_videos = max(0, self._stats.total_videos - 1)
        return session

    def clear(self) -> int:
        """Drop every session and zero all counters. Returns the number dropped."""
        dropped = len(self._sessions)
        self._sessions.clear()
        self._stats = GlobalStats()
        return dropped

    def ids(self) -> list[str]:
        return list(self._sessions)

    def sessions(self) -> list[VideoSession]:
        return list(self._sessions.values())

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[VideoSession]:
        return iter(list(self._sessions.values()))

    # ------------------------------------------------------------------
    # Global counters
    # ------------------------------------------------------------------

    def record_watch_second(self) -> None:
        self._stats.total_watch_time_sec += 1

    def record_view(self) -> None:
        self._stats.total_views += 1

    def session_started(self) -> None:
        self._stats.sessions_active += 1

    def session_stopped(self) -> None:
        self._stats.sessions_active = max(0, self._stats.sessions_active - 1)

    def global_stats(self) -> GlobalStats:
        """Snapshot copy of the counters."""
        return replace(self._stats)
