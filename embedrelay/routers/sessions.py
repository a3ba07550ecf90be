"""Video session endpoints.

- POST   /api/v1/sessions — create a session (201)
- GET    /api/v1/sessions — list sessions
- GET    /api/v1/sessions/{session_id} — one session with its stats
- DELETE /api/v1/sessions/{session_id} — remove one session
- DELETE /api/v1/sessions — remove every session and zero the counters
- POST   /api/v1/sessions/{session_id}/commands — player command to one session
- POST   /api/v1/sessions/commands — player command to every session
- POST   /api/v1/sessions/{session_id}/loaded — surface "loaded" signal
- POST   /api/v1/sessions/{session_id}/failed — surface "failed" signal
- GET    /api/v1/stats, /api/v1/stats/detailed — aggregate counters
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter

from embedrelay.middleware.error_handler import (
    DispatchFailedError,
    SessionCreationError,
    SessionNotFoundError,
    ValidationError,
)
from embedrelay.models.requests import CommandRequest, LoadedSignal
from embedrelay.models.responses import ok
from embedrelay.models.sessions import SessionDescriptor
from embedrelay.surface.commands import VideoCommand

if TYPE_CHECKING:
    from embedrelay.services.orchestrator import SessionOrchestrator

logger = logging.getLogger(__name__)


def _parse_command(body: CommandRequest) -> VideoCommand:
    command = VideoCommand.parse(body.command)
    if command is None:
        raise ValidationError(
            f"Unknown command: {body.command}",
            allowed=[c.value for c in VideoCommand],
        )
    return command


def create_sessions_router(*, orchestrator: "SessionOrchestrator") -> APIRouter:
    """Factory that creates the sessions router with injected dependencies."""

    sessions_router = APIRouter(prefix="/api/v1", tags=["sessions"])

    def _require(session_id: str):
        session = orchestrator.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id=session_id)
        return session

    @sessions_router.post("/sessions", status_code=201)
    async def create_session(body: SessionDescriptor) -> dict:
        """Create a session on the requested (or best available) endpoint."""
        handle = orchestrator.create_session(body)
        if handle is None:
            raise SessionCreationError()
        return ok(handle.to_dict())

    @sessions_router.get("/sessions")
    async def list_sessions() -> dict:
        sessions = [s.to_dict() for s in orchestrator.sessions()]
        return ok(sessions, count=len(sessions))

    @sessions_router.post("/sessions/commands")
    async def control_all(body: CommandRequest) -> dict:
        """Send one player command to every session."""
        command = _parse_command(body)
        dispatched = orchestrator.control_all(command, body.args)
        return ok({"command": command.value, "dispatched": dispatched})

    @sessions_router.delete("/sessions")
    async def clear_sessions() -> dict:
        orchestrator.clear_all()
        return ok({"cleared": True})

    @sessions_router.get("/sessions/{session_id}")
    async def get_session(session_id: str) -> dict:
        return ok(_require(session_id).to_dict())

    @sessions_router.delete("/sessions/{session_id}")
    async def remove_session(session_id: str) -> dict:
        if not orchestrator.remove_session(session_id):
            raise SessionNotFoundError(session_id=session_id)
        return ok({"session_id": session_id, "removed": True})

    @sessions_router.post("/sessions/{session_id}/commands")
    async def control_session(session_id: str, body: CommandRequest) -> dict:
        """Send a player command to one session's frame."""
        command = _parse_command(body)
        _require(session_id)
        if not orchestrator.control_session(session_id, command, body.args):
            raise DispatchFailedError(session_id=session_id, command=command.value)
        return ok({"session_id": session_id, "command": command.value})

    @sessions_router.post("/sessions/{session_id}/loaded")
    async def session_loaded(session_id: str, body: LoadedSignal | None = None) -> dict:
        """Surface signal: the frame finished loading."""
        _require(session_id)
        elapsed_ms = body.elapsed_ms if body else None
        transitioned = orchestrator.on_loaded(session_id, elapsed_ms)
        session = _require(session_id)
        return ok({
            "session_id": session_id,
            "transitioned": transitioned,
            "status": session.status.value,
        })

    @sessions_router.post("/sessions/{session_id}/failed")
    async def session_failed(session_id: str) -> dict:
        """Surface signal: the frame failed to load."""
        _require(session_id)
        transitioned = orchestrator.on_failed(session_id)
        session = _require(session_id)
        return ok({
            "session_id": session_id,
            "transitioned": transitioned,
            "status": session.status.value,
            "retry_count": session.retry_count,
        })

    @sessions_router.get("/stats")
    async def global_stats() -> dict:
        return ok(orchestrator.get_global_stats().to_dict())

    @sessions_router.get("/stats/detailed")
    async def detailed_stats() -> dict:
        return ok(orchestrator.get_detailed_stats())

    return sessions_router
