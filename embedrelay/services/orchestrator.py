"""Video session lifecycle orchestration.

The SessionOrchestrator creates sessions on the best available endpoint,
reacts to the embedding surface's load/failure signals, retries failed loads
on a different endpoint, accrues watch time on a per-session tick, forwards
player commands, and publishes every state change on the observer bus.

State machine:
- LOADING → READY: "loaded" signal; endpoint success recorded, ticking starts
- LOADING → ERROR: "failed" signal or load timeout; endpoint failure recorded
- ERROR → RETRYING: retries left; replacement endpoint chosen (excluding the
  failed one), jittered backoff armed
- RETRYING → LOADING: backoff elapsed; load timeout re-armed
- ERROR (retries exhausted): terminal, "videoError" published

All work runs as scheduler callbacks on one thread. Every handler re-checks
that its session still exists and is in the expected status (and, for
timers, that the retry attempt it was armed for is still current), so late
or duplicate signals are no-ops. Public operations never raise.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any
from uuid import uuid4

import pydantic

from embedrelay.config.settings import RelaySettings
from embedrelay.middleware.error_handler import ProxyUnavailableError
from embedrelay.models.sessions import (
    GlobalStats,
    ProxyAnalytics,
    SessionDescriptor,
    SessionHandle,
    SessionStats,
    SessionStatus,
    VideoSession,
)
from embedrelay.proxy.registry import ProxyHealthRegistry
from embedrelay.proxy.selector import ProxySelector
from embedrelay.services.observer_bus import Listener, ObserverBus, SessionEvent
from embedrelay.services.scheduler import Scheduler, TimerHandle
from embedrelay.services.session_store import VideoSessionStore
from embedrelay.services.stats import get_detailed_stats, get_proxy_analytics
from embedrelay.surface.behavior import schedule_behavior
from embedrelay.surface.commands import CommandSink, VideoCommand
from embedrelay.surface.embed import build_embed_url, pick_user_agent

logger = logging.getLogger(__name__)


class LoadFailureReason(str, Enum):
    """Why a load attempt was treated as failed."""

    SIGNAL = "signal"
    TIMEOUT = "timeout"


@dataclass
class _SessionTimers:
    """Every timer keyed to one session."""

    load_timeout: TimerHandle | None = None
    retry: TimerHandle | None = None
    tick: TimerHandle | None = None
    ticking: bool = False
    behavior: list[TimerHandle] = field(default_factory=list)

    def cancel_load_timeout(self) -> None:
        if self.load_timeout is not None:
            self.load_timeout.cancel()
            self.load_timeout = None

    def cancel_all(self) -> None:
        self.cancel_load_timeout()
        for handle in (self.retry, self.tick, *self.behavior):
            if handle is not None:
                handle.cancel()
        self.retry = None
        self.tick = None
        self.ticking = False
        self.behavior = []


class SessionOrchestrator:
    """Drives every video session through its load/play/retry lifecycle.

    Parameters
    ----------
    registry:
        Endpoint health registry; receives one outcome per load attempt.
    selector:
        Chooses endpoints for new and retried sessions.
    store:
        Owns session records and the global counters.
    bus:
        Receives every state-change event.
    scheduler:
        Clock and timer source for timeouts, backoff and ticks.
    sink:
        Command dispatch to the embedding surface.
    user_agents:
        Pool a user agent is drawn from for each new session.
    rng:
        Random source for retry jitter, user agents and behaviour events.
    """

    def __init__(
        self,
        *,
        registry: ProxyHealthRegistry,
        selector: ProxySelector,
        store: VideoSessionStore,
        bus: ObserverBus,
        scheduler: Scheduler,
        sink: CommandSink,
        user_agents: Sequence[str] = (),
        rng: random.Random | None = None,
        load_timeout_seconds: float = 15.0,
        max_retries: int = 3,
        retry_backoff_min_ms: int = 2000,
        retry_backoff_max_ms: int = 5000,
        tick_interval_seconds: float = 1.0,
        view_interval_seconds: int = 30,
    ) -> None:
        self._registry = registry
        self._selector = selector
        self._store = store
        self._bus = bus
        self._scheduler = scheduler
        self._sink = sink
        self._user_agents = list(user_agents)
        self._rng = rng or random.Random()

        self._load_timeout_seconds = load_timeout_seconds
        self._max_retries = max_retries
        self._retry_backoff_min_ms = retry_backoff_min_ms
        self._retry_backoff_max_ms = retry_backoff_max_ms
        self._tick_interval_seconds = tick_interval_seconds
        self._view_interval_seconds = view_interval_seconds

        self._timers: dict[str, _SessionTimers] = {}

    @classmethod
    def from_settings(
        cls,
        settings: RelaySettings,
        *,
        registry: ProxyHealthRegistry,
        scheduler: Scheduler,
        sink: CommandSink,
        user_agents: Sequence[str] = (),
        store: VideoSessionStore | None = None,
        bus: ObserverBus | None = None,
        rng: random.Random | None = None,
    ) -> "SessionOrchestrator":
        return cls(
            registry=registry,
            selector=ProxySelector(registry),
            store=store or VideoSessionStore(),
            bus=bus or ObserverBus(),
            scheduler=scheduler,
            sink=sink,
            user_agents=user_agents,
            rng=rng,
            load_timeout_seconds=settings.load_timeout_seconds,
            max_retries=settings.max_retries,
            retry_backoff_min_ms=settings.retry_backoff_min_ms,
            retry_backoff_max_ms=settings.retry_backoff_max_ms,
            tick_interval_seconds=settings.tick_interval_seconds,
            view_interval_seconds=settings.view_interval_seconds,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def registry(self) -> ProxyHealthRegistry:
        return self._registry

    @property
    def store(self) -> VideoSessionStore:
        return self._store

    @property
    def bus(self) -> ObserverBus:
        return self._bus

    def get_session(self, session_id: str) -> VideoSession | None:
        return self._store.get(session_id)

    def get_session_stats(self, session_id: str) -> SessionStats | None:
        session = self._store.get(session_id)
        return replace(session.stats) if session else None

    def sessions(self) -> list[VideoSession]:
        return self._store.sessions()

    # ------------------------------------------------------------------
    # Session creation
    # ------------------------------------------------------------------

    def create_session(
        self, descriptor: SessionDescriptor | dict[str, Any]
    ) -> SessionHandle | None:
        """Create a session on the requested (or best) endpoint and start loading.

        Returns ``None`` if the descriptor is invalid or no endpoint exists.
        """
        try:
            if not isinstance(descriptor, SessionDescriptor):
                descriptor = SessionDescriptor.model_validate(descriptor)

            endpoint_id = self._resolve_endpoint(descriptor.proxy_id)
            endpoint = self._registry.endpoint(endpoint_id)
            session_id = str(uuid4())

            session = VideoSession(
                id=session_id,
                video_ref=descriptor.video_ref,
                frame_id=f"frame-{session_id}",
                endpoint_id=endpoint_id,
                user_agent=pick_user_agent(self._user_agents, self._rng),
                embed_url=build_embed_url(
                    descriptor.video_ref,
                    endpoint.embed if endpoint else None,
                    descriptor.behavior,
                ),
                view_duration_sec=descriptor.view_duration_sec,
                behavior=descriptor.behavior,
                load_started_at=self._scheduler.time(),
            )

            self._store.add(session)
            self._timers[session_id] = _SessionTimers()
            self._arm_load_timeout(session)
        except pydantic.ValidationError as exc:
            logger.warning("Rejected session descriptor: %s", exc)
            return None
        except ProxyUnavailableError:
            logger.error("Cannot create session: no endpoint configured")
            return None
        except Exception:
            logger.exception("Failed to create session")
            return None

        logger.info(
            "Created session %s on endpoint %s",
            session.id,
            endpoint_id,
            extra={"session_id": session.id, "endpoint_id": endpoint_id},
        )
        self._bus.publish(SessionEvent.VIDEO_CREATED, session)
        return SessionHandle.from_session(session)

    def _resolve_endpoint(self, proxy_id: str) -> str:
        endpoint = self._registry.endpoint(proxy_id)
        if endpoint is not None and not endpoint.is_virtual:
            return proxy_id
        if endpoint is None and proxy_id != "auto":
            logger.warning("Unknown endpoint %r requested — selecting automatically", proxy_id)
        return self._selector.select_optimal()

    # ------------------------------------------------------------------
    # Surface signals
    # ------------------------------------------------------------------

    def on_loaded(self, session_id: str, elapsed_ms: float | None = None) -> bool:
        """Handle the surface's "loaded" signal. Returns True if it caused a transition."""
        try:
            return self._handle_loaded(session_id, elapsed_ms)
        except Exception:
            logger.exception("Error handling load for session %s", session_id)
            return False

    def on_failed(self, session_id: str) -> bool:
        """Handle the surface's "failed" signal. Returns True if it caused a transition."""
        try:
            return self._handle_failure(session_id, LoadFailureReason.SIGNAL)
        except Exception:
            logger.exception("Error handling failure for session %s", session_id)
            return False

    def _handle_loaded(self, session_id: str, elapsed_ms: float | None) -> bool:
        session = self._store.get(session_id)
        timers = self._timers.get(session_id)
        if session is None or timers is None or session.status != SessionStatus.LOADING:
            logger.debug("Ignoring late/duplicate load signal for %s", session_id)
            return False

        timers.cancel_load_timeout()
        if elapsed_ms is None:
            elapsed_ms = (self._scheduler.time() - session.load_started_at) * 1000
        load_time_ms = max(0.0, float(elapsed_ms))

        session.stats.load_time_ms = load_time_ms
        session.status = SessionStatus.READY
        self._registry.record_outcome(session.endpoint_id, True, load_time_ms)
        self._start_ticking(session, timers)

        if session.behavior.human_behavior and session.view_duration_sec > 0:
            timers.behavior = schedule_behavior(
                self._scheduler,
                self._sink,
                session.frame_id,
                session.view_duration_sec,
                self._rng,
            )

        logger.info(
            "Session %s ready on %s in %.0fms",
            session_id,
            session.endpoint_id,
            load_time_ms,
            extra={
                "session_id": session_id,
                "endpoint_id": session.endpoint_id,
                "event": SessionEvent.VIDEO_LOADED.value,
                "duration_ms": load_time_ms,
            },
        )
        self._bus.publish(SessionEvent.VIDEO_LOADED, session)
        return True

    def _on_load_timeout(self, session_id: str, attempt: int) -> None:
        try:
            self._handle_failure(session_id, LoadFailureReason.TIMEOUT, attempt)
        except Exception:
            logger.exception("Error handling load timeout for session %s", session_id)

    def _handle_failure(
        self,
        session_id: str,
        reason: LoadFailureReason,
        attempt: int | None = None,
    ) -> bool:
        session = self._store.get(session_id)
        timers = self._timers.get(session_id)
        if session is None or timers is None or session.status != SessionStatus.LOADING:
            logger.debug("Ignoring late/duplicate failure for %s", session_id)
            return False
        if attempt is not None and attempt != session.retry_count:
            return False

        timers.cancel_load_timeout()
        session.stats.errors += 1
        session.status = SessionStatus.ERROR
        failed_endpoint = session.endpoint_id
        self._registry.record_outcome(failed_endpoint, False)

        if session.retry_count < self._max_retries:
            self._schedule_retry(session, timers, failed_endpoint, reason)
            return True

        logger.warning(
            "Session %s failed permanently after %d retries",
            session_id,
            session.retry_count,
            extra={
                "session_id": session_id,
                "endpoint_id": failed_endpoint,
                "event": SessionEvent.VIDEO_ERROR.value,
                "retry_attempts": session.retry_count,
                "error_reason": reason.value,
            },
        )
        self._bus.publish(SessionEvent.VIDEO_ERROR, session)
        return True

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------

    def _schedule_retry(
        self,
        session: VideoSession,
        timers: _SessionTimers,
        failed_endpoint: str,
        reason: LoadFailureReason,
    ) -> None:
        session.retry_count += 1
        session.status = SessionStatus.RETRYING

        try:
            replacement = self._selector.select_optimal([failed_endpoint])
        except ProxyUnavailableError:
            replacement = failed_endpoint
        session.endpoint_id = replacement
        endpoint = self._registry.endpoint(replacement)
        session.embed_url = build_embed_url(
            session.video_ref, endpoint.embed if endpoint else None, session.behavior
        )

        delay_ms = self._rng.randint(self._retry_backoff_min_ms, self._retry_backoff_max_ms)
        timers.retry = self._scheduler.call_later(
            delay_ms / 1000.0, self._resume_loading, session.id, session.retry_count
        )

        logger.info(
            "Session %s load failed (%s) on %s — retry %d/%d on %s in %dms",
            session.id,
            reason.value,
            failed_endpoint,
            session.retry_count,
            self._max_retries,
            replacement,
            delay_ms,
            extra={
                "session_id": session.id,
                "endpoint_id": replacement,
                "retry_attempts": session.retry_count,
                "error_reason": reason.value,
            },
        )

    def _resume_loading(self, session_id: str, attempt: int) -> None:
        session = self._store.get(session_id)
        timers = self._timers.get(session_id)
        if session is None or timers is None:
            return
        if session.status != SessionStatus.RETRYING or session.retry_count != attempt:
            return

        timers.retry = None
        session.status = SessionStatus.LOADING
        session.load_started_at = self._scheduler.time()
        self._arm_load_timeout(session)
        self._bus.publish(SessionEvent.VIDEO_RETRY, session)

    def _arm_load_timeout(self, session: VideoSession) -> None:
        timers = self._timers[session.id]
        timers.cancel_load_timeout()
        timers.load_timeout = self._scheduler.call_later(
            self._load_timeout_seconds,
            self._on_load_timeout,
            session.id,
            session.retry_count,
        )

    # ------------------------------------------------------------------
    # Watch-time ticking
    # ------------------------------------------------------------------

    def _start_ticking(self, session: VideoSession, timers: _SessionTimers) -> None:
        if timers.ticking:
            return
        timers.ticking = True
        self._store.session_started()
        timers.tick = self._scheduler.call_later(
            self._tick_interval_seconds, self._tick, session.id
        )

    def _stop_ticking(self, timers: _SessionTimers) -> None:
        if not timers.ticking:
            return
        timers.ticking = False
        if timers.tick is not None:
            timers.tick.cancel()
            timers.tick = None
        self._store.session_stopped()

    def _tick(self, session_id: str) -> None:
        session = self._store.get(session_id)
        timers = self._timers.get(session_id)
        if session is None or timers is None or not timers.ticking:
            return
        timers.tick = None

        try:
            if session.stats.is_playing:
                session.stats.watch_time_sec += 1
                self._store.record_watch_second()

                if session.stats.watch_time_sec % self._view_interval_seconds == 0:
                    session.stats.views += 1
                    self._store.record_view()
                    self._bus.publish(SessionEvent.VIEW_INCREMENT, session)

                    # A listener may have removed the session or cleared everything
                    if not timers.ticking or self._timers.get(session_id) is not timers:
                        return

            cap = session.view_duration_sec
            if cap > 0 and session.stats.watch_time_sec >= cap:
                self._stop_ticking(timers)
                logger.info(
                    "Session %s reached its %ds view duration",
                    session_id,
                    cap,
                    extra={"session_id": session_id},
                )
                self._bus.publish(SessionEvent.SESSION_COMPLETED, session)
                return
        except Exception:
            logger.exception("Error in watch-time tick for session %s", session_id)

        if timers.ticking:
            timers.tick = self._scheduler.call_later(
                self._tick_interval_seconds, self._tick, session_id
            )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def control_session(
        self,
        session_id: str,
        command: VideoCommand | str,
        args: Sequence[Any] = (),
    ) -> bool:
        """Send a player command to one session's frame."""
        try:
            parsed = VideoCommand.parse(command)
            if parsed is None:
                logger.warning("Unknown player command %r", command)
                return False

            session = self._store.get(session_id)
            if session is None:
                return False

            try:
                delivered = bool(self._sink.send_command(session.frame_id, parsed, args))
            except Exception:
                logger.exception(
                    "Command %s dispatch failed for session %s", parsed.value, session_id
                )
                return False
            if not delivered:
                return False

            session.stats.interactions += 1
            if parsed is VideoCommand.PLAY:
                session.stats.is_playing = True
            elif parsed is VideoCommand.PAUSE:
                session.stats.is_playing = False

            self._bus.publish(
                SessionEvent.VIDEO_COMMAND,
                {"session": session, "command": parsed, "args": list(args)},
            )
            return True
        except Exception:
            logger.exception("Error controlling session %s", session_id)
            return False

    def control_all(self, command: VideoCommand | str, args: Sequence[Any] = ()) -> int:
        """Send a command to every session; returns how many were dispatched."""
        return sum(
            1 for session_id in self._store.ids()
            if self.control_session(session_id, command, args)
        )

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove_session(self, session_id: str) -> bool:
        """Cancel a session's timers and delete it. False if unknown."""
        try:
            session = self._store.get(session_id)
            if session is None:
                return False

            timers = self._timers.pop(session_id, None)
            if timers is not None:
                self._stop_ticking(timers)
                timers.cancel_all()
            self._store.remove(session_id)
        except Exception:
            logger.exception("Error removing session %s", session_id)
            return False

        logger.info("Removed session %s", session_id, extra={"session_id": session_id})
        self._bus.publish(SessionEvent.VIDEO_REMOVED, session)
        return True

    def clear_all(self) -> None:
        """Cancel every timer, drop every session and zero the counters."""
        try:
            for timers in self._timers.values():
                timers.cancel_all()
            self._timers.clear()
            dropped = self._store.clear()
        except Exception:
            logger.exception("Error clearing sessions")
            return

        logger.info("Cleared %d sessions", dropped)
        self._bus.publish(SessionEvent.ALL_CLEARED, None)

    # ------------------------------------------------------------------
    # Endpoint maintenance
    # ------------------------------------------------------------------

    def optimize_all(self) -> None:
        try:
            self._registry.recover()
        except Exception:
            logger.exception("Endpoint recovery pass failed")

    def reset_endpoint(self, endpoint_id: str) -> None:
        try:
            self._registry.reset(endpoint_id)
        except Exception:
            logger.exception("Failed to reset endpoint %s", endpoint_id)

    # ------------------------------------------------------------------
    # Observers / stats
    # ------------------------------------------------------------------

    def subscribe(self, callback: Listener) -> None:
        self._bus.subscribe(callback)

    def unsubscribe(self, callback: Listener) -> None:
        self._bus.unsubscribe(callback)

    def get_global_stats(self) -> GlobalStats:
        try:
            return self._store.global_stats()
        except Exception:
            logger.exception("Failed to read global stats")
            return GlobalStats()

    def get_proxy_analytics(self) -> ProxyAnalytics:
        try:
            return get_proxy_analytics(self._registry)
        except Exception:
            logger.exception("Failed to aggregate proxy analytics")
            return ProxyAnalytics()

    def get_detailed_stats(self) -> dict:
        try:
            return get_detailed_stats(self._store)
        except Exception:
            logger.exception("Failed to build detailed stats")
            return {
                "global": GlobalStats().to_dict(),
                "endpoint_usage": {},
                "status_counts": {},
                "average_watch_time_sec": 0,
                "average_views": 0,
            }
