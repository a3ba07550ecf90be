"""Pydantic request models and in-memory state models for video sessions."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, Enum):
    """Lifecycle status of a video session."""

    LOADING = "loading"
    READY = "ready"
    RETRYING = "retrying"
    ERROR = "error"


class BehaviorOptions(BaseModel):
    """Player options forwarded to the embed URL plus behaviour simulation."""

    autoplay: bool = True
    muted: bool = True
    controls: bool = True
    human_behavior: bool = True
    start_time: int = Field(default=0, ge=0)


class SessionDescriptor(BaseModel):
    """Request model for a new video session."""

    video_ref: str = Field(..., min_length=1)
    proxy_id: str = "auto"
    view_duration_sec: int = Field(default=30, ge=0)  # 0 = no accrual cap
    behavior: BehaviorOptions = Field(default_factory=BehaviorOptions)


@dataclass
class SessionStats:
    """Per-session engagement counters."""

    views: int = 0
    watch_time_sec: int = 0
    interactions: int = 0
    errors: int = 0
    load_time_ms: float = 0.0
    is_playing: bool = False


@dataclass
class VideoSession:
    """In-memory state for one embedded video."""

    id: str
    video_ref: str
    frame_id: str
    endpoint_id: str
    user_agent: str
    embed_url: str
    view_duration_sec: int
    behavior: BehaviorOptions = field(default_factory=BehaviorOptions)
    status: SessionStatus = SessionStatus.LOADING
    retry_count: int = 0
    stats: SessionStats = field(default_factory=SessionStats)
    created_at: datetime = field(default_factory=_utcnow)
    load_started_at: float = 0.0  # scheduler clock seconds

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "video_ref": self.video_ref,
            "frame_id": self.frame_id,
            "endpoint_id": self.endpoint_id,
            "user_agent": self.user_agent,
            "embed_url": self.embed_url,
            "view_duration_sec": self.view_duration_sec,
            "behavior": self.behavior.model_dump(),
            "status": self.status.value,
            "retry_count": self.retry_count,
            "stats": asdict(self.stats),
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class SessionHandle:
    """What a caller gets back from session creation."""

    id: str
    frame_id: str
    endpoint_id: str
    embed_url: str
    user_agent: str
    status: SessionStatus

    @classmethod
    def from_session(cls, session: VideoSession) -> "SessionHandle":
        return cls(
            id=session.id,
            frame_id=session.frame_id,
            endpoint_id=session.endpoint_id,
            embed_url=session.embed_url,
            user_agent=session.user_agent,
            status=session.status,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class GlobalStats:
    """Running counters across all sessions."""

    total_views: int = 0
    total_watch_time_sec: int = 0
    total_videos: int = 0
    sessions_active: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ProxyAnalytics:
    """Aggregate view of the endpoint registry."""

    total_requests: int = 0
    total_successes: int = 0
    total_failures: int = 0
    success_rate_pct: float = 0.0
    healthy_count: int = 0
    blocked_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)
