"""Embed URL construction and user agent assignment for new sessions."""

from __future__ import annotations

import random
from collections.abc import Sequence
from urllib.parse import urlencode

from embedrelay.models.sessions import BehaviorOptions

DEFAULT_EMBED_BASE = "https://www.youtube.com/embed/"

# Caption/locale hints added when behaviour simulation is on
_BEHAVIOR_PARAMS: dict[str, str | int] = {
    "hl": "en",
    "cc_lang_pref": "en",
    "cc_load_policy": 0,
}


def build_embed_url(
    video_ref: str,
    embed_base: str | None,
    options: BehaviorOptions,
) -> str:
    """Return ``<embed_base><video_ref>?<player params>``.

    A missing base (virtual endpoint) falls back to the direct embed host.
    """
    params: dict[str, str | int] = {"enablejsapi": 1}
    if options.autoplay:
        params["autoplay"] = 1
    if options.muted:
        params["mute"] = 1
    params["controls"] = 1 if options.controls else 0
    if options.start_time:
        params["start"] = options.start_time
    if options.human_behavior:
        params.update(_BEHAVIOR_PARAMS)

    base = embed_base or DEFAULT_EMBED_BASE
    return f"{base}{video_ref}?{urlencode(params)}"


def pick_user_agent(user_agents: Sequence[str], rng: random.Random | None = None) -> str:
    """Random user agent from the configured pool ("" when the pool is empty)."""
    if not user_agents:
        return ""
    return (rng or random).choice(list(user_agents))
