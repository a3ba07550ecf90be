"""Static schedule of synthetic interaction events for a playing session.

Each entry is ``(delay_seconds, SyntheticEvent)``. When a session becomes
ready with behaviour simulation on, every entry whose delay falls inside the
view duration is scheduled once and dispatched through the command sink.
The schedule never reads or writes session state.
"""

from __future__ import annotations

import logging
import random
from enum import Enum

from embedrelay.services.scheduler import Scheduler, TimerHandle
from embedrelay.surface.commands import CommandSink

logger = logging.getLogger(__name__)


class SyntheticEvent(str, Enum):
    MOUSE_MOVE = "mousemove"
    SCROLL = "wheel"
    KEY_PRESS = "keydown"


BEHAVIOR_SCHEDULE: tuple[tuple[float, SyntheticEvent], ...] = (
    (2.0, SyntheticEvent.MOUSE_MOVE),
    (5.0, SyntheticEvent.SCROLL),
    (8.0, SyntheticEvent.MOUSE_MOVE),
    (12.0, SyntheticEvent.KEY_PRESS),
)

KEYS: tuple[str, ...] = ("Space", "ArrowUp", "ArrowDown", "ArrowLeft", "ArrowRight")


def build_event(kind: SyntheticEvent, rng: random.Random) -> dict:
    """Payload for one synthetic event; pointer positions are frame fractions."""
    if kind is SyntheticEvent.MOUSE_MOVE:
        return {"type": kind.value, "x": rng.random(), "y": rng.random()}
    if kind is SyntheticEvent.SCROLL:
        return {"type": kind.value, "deltaY": rng.uniform(-50, 50)}
    return {"type": kind.value, "key": rng.choice(KEYS)}


def schedule_behavior(
    scheduler: Scheduler,
    sink: CommandSink,
    frame_id: str,
    duration_sec: float,
    rng: random.Random | None = None,
) -> list[TimerHandle]:
    """Arm the behaviour schedule for one frame; returns the timer handles.

    A non-positive duration schedules nothing.
    """
    rng = rng or random.Random()
    handles: list[TimerHandle] = []
    for delay, kind in BEHAVIOR_SCHEDULE:
        if delay >= duration_sec:
            continue
        handles.append(
            scheduler.call_later(delay, _dispatch, sink, frame_id, kind, rng)
        )
    return handles


def _dispatch(
    sink: CommandSink, frame_id: str, kind: SyntheticEvent, rng: random.Random
) -> None:
    try:
        if not sink.send_event(frame_id, build_event(kind, rng)):
            logger.debug("Synthetic %s not delivered to %s", kind.value, frame_id)
    except Exception:
        logger.exception("Synthetic %s dispatch to %s failed", kind.value, frame_id)
