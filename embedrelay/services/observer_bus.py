"""Synchronous fan-out of session state-change events.

Listeners are called in subscription order on the publishing callback. A
listener that raises is logged and skipped; delivery to the remaining
listeners continues and the publisher never sees the error.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class SessionEvent(str, Enum):
    """Event names published by the orchestrator."""

    VIDEO_CREATED = "videoCreated"
    VIDEO_LOADED = "videoLoaded"
    VIDEO_RETRY = "videoRetry"
    VIDEO_ERROR = "videoError"
    VIEW_INCREMENT = "viewIncrement"
    SESSION_COMPLETED = "sessionCompleted"
    VIDEO_COMMAND = "videoCommand"
    VIDEO_REMOVED = "videoRemoved"
    ALL_CLEARED = "allCleared"


Listener = Callable[[SessionEvent, Any], None]


class ObserverBus:
    """Publish/subscribe registry for session events."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, callback: Listener) -> None:
        """Register a listener called as ``callback(event, payload)``."""
        if not callable(callback):
            logger.warning("Ignoring non-callable subscriber: %r", callback)
            return
        self._listeners.append(callback)

    def unsubscribe(self, callback: Listener) -> None:
        self._listeners = [cb for cb in self._listeners if cb is not callback]

    def publish(self, event: SessionEvent, payload: Any = None) -> None:
        for callback in list(self._listeners):
            try:
                callback(event, payload)
            except Exception:
                logger.exception(
                    "Subscriber %r failed handling %s",
                    callback,
                    event.value,
                    extra={"event": event.value},
                )

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)
