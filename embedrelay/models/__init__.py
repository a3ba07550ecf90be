"""Public models for the relay service."""

from embedrelay.models.requests import CommandRequest, LoadedSignal
from embedrelay.models.responses import ApiResponse, ok
from embedrelay.models.sessions import (
    BehaviorOptions,
    GlobalStats,
    ProxyAnalytics,
    SessionDescriptor,
    SessionHandle,
    SessionStats,
    SessionStatus,
    VideoSession,
)

__all__ = [
    "ApiResponse",
    "BehaviorOptions",
    "CommandRequest",
    "GlobalStats",
    "LoadedSignal",
    "ProxyAnalytics",
    "SessionDescriptor",
    "SessionHandle",
    "SessionStats",
    "SessionStatus",
    "VideoSession",
    "ok",
]
