"""Outbound command dispatch to the embedding surface.

The surface hosts one player frame per session, addressed by ``frame_id``.
Commands are fire-and-forget: a sink reports whether it accepted the command
for delivery, never whether the player acted on it.

``HttpCommandSink`` posts the player message
``{"event": "command", "func": <command>, "args": [...]}`` to
``/frames/{frame_id}/commands`` (synthetic behaviour events go to
``/frames/{frame_id}/events``) as background tasks on the running loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)


class VideoCommand(str, Enum):
    """Player commands understood by the embedding surface."""

    PLAY = "playVideo"
    PAUSE = "pauseVideo"
    MUTE = "mute"
    UNMUTE = "unMute"

    @classmethod
    def parse(cls, value: "str | VideoCommand") -> "VideoCommand | None":
        try:
            return cls(value)
        except ValueError:
            return None


class CommandSink(Protocol):
    def send_command(
        self, frame_id: str, command: VideoCommand, args: Sequence[Any] = ()
    ) -> bool: ...

    def send_event(self, frame_id: str, event: dict) -> bool: ...


class DetachedCommandSink:
    """Sink used when no surface is configured; every dispatch fails."""

    def send_command(
        self, frame_id: str, command: VideoCommand, args: Sequence[Any] = ()
    ) -> bool:
        logger.debug("No surface configured — dropping %s for %s", command.value, frame_id)
        return False

    def send_event(self, frame_id: str, event: dict) -> bool:
        return False


class HttpCommandSink:
    """Delivers commands to the surface over HTTP without waiting for them.

    Parameters
    ----------
    base_url:
        Root URL of the embedding surface.
    timeout_seconds:
        HTTP timeout per delivery (default 5).
    client:
        Optional preconfigured ``httpx.AsyncClient`` (must carry ``base_url``).
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=httpx.Timeout(timeout_seconds)
        )
        self._pending: set[asyncio.Task[None]] = set()

    @staticmethod
    def build_message(command: VideoCommand, args: Sequence[Any] = ()) -> dict:
        return {"event": "command", "func": command.value, "args": list(args)}

    def send_command(
        self, frame_id: str, command: VideoCommand, args: Sequence[Any] = ()
    ) -> bool:
        return self._post(f"/frames/{frame_id}/commands", self.build_message(command, args))

    def send_event(self, frame_id: str, event: dict) -> bool:
        return self._post(f"/frames/{frame_id}/events", event)

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def _post(self, path: str, payload: dict) -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running event loop (e.g. called from sync code), nothing can deliver
            logger.warning("No event loop available for surface dispatch to %s", path)
            return False

        task = loop.create_task(self._deliver(path, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _deliver(self, path: str, payload: dict) -> None:
        """POST one message, logging errors without raising."""
        try:
            response = await self._client.post(path, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Surface dispatch to %s failed: %s", path, exc)
            return

        if response.status_code >= 400:
            logger.warning(
                "Surface dispatch to %s returned %d", path, response.status_code
            )

    async def aclose(self, timeout: float = 5.0) -> None:
        """Wait briefly for in-flight deliveries, then close the client."""
        if self._pending:
            _, pending = await asyncio.wait(set(self._pending), timeout=timeout)
            for task in pending:
                task.cancel()
        await self._client.aclose()
