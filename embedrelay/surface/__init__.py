"""Embedding surface adapters — command dispatch, embed URLs, behaviour schedule."""

from embedrelay.surface.behavior import BEHAVIOR_SCHEDULE, SyntheticEvent, schedule_behavior
from embedrelay.surface.commands import (
    CommandSink,
    DetachedCommandSink,
    HttpCommandSink,
    VideoCommand,
)
from embedrelay.surface.embed import build_embed_url, pick_user_agent

__all__ = [
    "BEHAVIOR_SCHEDULE",
    "CommandSink",
    "DetachedCommandSink",
    "HttpCommandSink",
    "SyntheticEvent",
    "VideoCommand",
    "build_embed_url",
    "pick_user_agent",
    "schedule_behavior",
]
