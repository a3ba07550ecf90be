"""Shared test fixtures and hypothesis strategies for the relay test suite."""

from __future__ import annotations

import os
import random
from typing import Any

import pytest
from hypothesis import strategies as st

from embedrelay.config.settings import RelaySettings
from embedrelay.proxy.registry import ProxyHealthRegistry
from embedrelay.proxy.selector import ProxySelector
from embedrelay.proxy.types import ProxyEndpoint
from embedrelay.services.observer_bus import ObserverBus, SessionEvent
from embedrelay.services.orchestrator import SessionOrchestrator
from embedrelay.services.scheduler import ManualScheduler
from embedrelay.services.session_store import VideoSessionStore


# ---------------------------------------------------------------------------
# Keep RELAY_* variables from the developer's shell out of the tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clear_relay_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("RELAY_"):
            monkeypatch.delenv(key, raising=False)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class RecordingSink:
    """Command sink that records every dispatch; ``accept`` controls the result."""

    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.commands: list[tuple[str, Any, list]] = []
        self.events: list[tuple[str, dict]] = []

    def send_command(self, frame_id: str, command: Any, args: Any = ()) -> bool:
        self.commands.append((frame_id, command, list(args)))
        return self.accept

    def send_event(self, frame_id: str, event: dict) -> bool:
        self.events.append((frame_id, event))
        return self.accept


def make_endpoints() -> list[ProxyEndpoint]:
    """Small catalogue: one virtual selector and three selectable endpoints."""
    return [
        ProxyEndpoint(id="auto", embed=None, base_health=100, name="Auto"),
        ProxyEndpoint(id="alpha", embed="https://alpha.example/embed/", base_health=90, priority=5),
        ProxyEndpoint(id="beta", embed="https://beta.example/embed/", base_health=70, priority=3),
        ProxyEndpoint(id="gamma", embed="https://gamma.example/embed/", base_health=50, priority=2),
    ]


def make_orchestrator(
    scheduler: ManualScheduler | None = None,
    sink: RecordingSink | None = None,
    seed: int = 1234,
    **kwargs: Any,
) -> SessionOrchestrator:
    """Fully wired orchestrator on a virtual clock (for use inside @given tests)."""
    scheduler = scheduler or ManualScheduler()
    registry = ProxyHealthRegistry(make_endpoints(), scheduler)
    return SessionOrchestrator(
        registry=registry,
        selector=ProxySelector(registry),
        store=VideoSessionStore(),
        bus=ObserverBus(),
        scheduler=scheduler,
        sink=sink or RecordingSink(),
        user_agents=["ua-one", "ua-two"],
        rng=random.Random(seed),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> RelaySettings:
    """Test settings with the default lifecycle constants."""
    return RelaySettings(surface_url=None, log_json=False)


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def registry(scheduler: ManualScheduler) -> ProxyHealthRegistry:
    return ProxyHealthRegistry(make_endpoints(), scheduler)


@pytest.fixture
def selector(registry: ProxyHealthRegistry) -> ProxySelector:
    return ProxySelector(registry)


@pytest.fixture
def store() -> VideoSessionStore:
    return VideoSessionStore()


@pytest.fixture
def bus() -> ObserverBus:
    return ObserverBus()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def orchestrator(
    registry: ProxyHealthRegistry,
    selector: ProxySelector,
    store: VideoSessionStore,
    bus: ObserverBus,
    scheduler: ManualScheduler,
    sink: RecordingSink,
) -> SessionOrchestrator:
    return SessionOrchestrator(
        registry=registry,
        selector=selector,
        store=store,
        bus=bus,
        scheduler=scheduler,
        sink=sink,
        user_agents=["ua-one", "ua-two"],
        rng=random.Random(1234),
    )


@pytest.fixture
def events(bus: ObserverBus) -> list[tuple[SessionEvent, Any]]:
    """Every (event, payload) published on the bus, in order."""
    received: list[tuple[SessionEvent, Any]] = []
    bus.subscribe(lambda event, payload: received.append((event, payload)))
    return received


# ---------------------------------------------------------------------------
# Hypothesis strategies (reusable across property tests)
# ---------------------------------------------------------------------------

endpoint_ids = st.sampled_from(["alpha", "beta", "gamma"])

# Success/failure outcome sequences (True = success)
outcome_sequences = st.lists(st.booleans(), min_size=1, max_size=60)

video_refs = st.from_regex(r"[A-Za-z0-9_-]{11}", fullmatch=True)

# Play/pause segments: (playing, seconds)
play_segments = st.lists(
    st.tuples(st.booleans(), st.integers(min_value=1, max_value=90)),
    min_size=1,
    max_size=8,
)
