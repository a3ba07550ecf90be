"""Pydantic request bodies for the command and surface-signal endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class CommandRequest(BaseModel):
    """Player command for one session or for every session."""

    command: str = Field(..., min_length=1)
    args: list[Any] = Field(default_factory=list)


class LoadedSignal(BaseModel):
    """Surface report that a frame finished loading.

    ``elapsed_ms`` is optional; when omitted the relay measures load time
    from when the attempt started.
    """

    elapsed_ms: float | None = Field(default=None, ge=0)
