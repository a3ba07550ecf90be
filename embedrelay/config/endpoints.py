"""Endpoint catalogue models and YAML loader.

Provides typed Pydantic models for the relay endpoint catalogue and a loader
that parses the YAML config into those models. The catalogue is the static
baseline for the health registry: endpoint order in the file is the order
used for the degraded fallback.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class EndpointSpec(BaseModel):
    """Static definition of a single relay endpoint."""

    name: str = ""
    embed: str | None = None  # None marks the virtual "auto" selector
    priority: int = Field(default=1, ge=0)
    health: float = Field(default=50.0, ge=0, le=100)
    icon: str | None = None


class EndpointCatalog(BaseModel):
    """Endpoint definitions keyed by id, plus the user agent pool."""

    endpoints: dict[str, EndpointSpec]
    user_agents: list[str] = Field(default_factory=list)


_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

_DEFAULT_CATALOG = EndpointCatalog(
    endpoints={
        "auto": EndpointSpec(name="Auto Select", embed=None, priority=1, health=100),
        "noproxy": EndpointSpec(
            name="Direct",
            embed="https://www.youtube.com/embed/",
            priority=5,
            health=85,
        ),
        "nocookie": EndpointSpec(
            name="No Cookie",
            embed="https://www.youtube-nocookie.com/embed/",
            priority=4,
            health=75,
        ),
    },
    user_agents=[_DEFAULT_USER_AGENT],
)


def default_catalog() -> EndpointCatalog:
    """Return a fresh copy of the built-in catalogue."""
    return _DEFAULT_CATALOG.model_copy(deep=True)


def load_endpoint_catalog(yaml_path: str) -> EndpointCatalog:
    """Parse an endpoint catalogue YAML file into an EndpointCatalog.

    Args:
        yaml_path: Path to the YAML configuration file.

    Returns:
        The parsed catalogue. If the file is missing, unparsable, or defines
        no usable (non-virtual) endpoint, the built-in catalogue is returned.
    """
    path = Path(yaml_path)

    if not path.exists():
        logger.warning("Endpoint catalogue not found at %s — using built-in defaults", yaml_path)
        return default_catalog()

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        logger.error("Failed to parse endpoint catalogue YAML at %s: %s", yaml_path, exc)
        return default_catalog()

    if not isinstance(raw, dict) or not isinstance(raw.get("endpoints"), dict):
        logger.warning("Endpoint catalogue YAML missing 'endpoints' mapping — using built-in defaults")
        return default_catalog()

    endpoints: dict[str, EndpointSpec] = {}
    for endpoint_id, config in raw["endpoints"].items():
        try:
            endpoints[str(endpoint_id)] = EndpointSpec.model_validate(config or {})
        except Exception as exc:
            logger.error("Invalid endpoint '%s': %s — skipping", endpoint_id, exc)

    if not any(spec.embed for spec in endpoints.values()):
        logger.warning("Endpoint catalogue has no selectable endpoint — using built-in defaults")
        return default_catalog()

    user_agents = [str(ua) for ua in raw.get("user_agents") or [] if ua]
    if not user_agents:
        user_agents = [_DEFAULT_USER_AGENT]

    return EndpointCatalog(endpoints=endpoints, user_agents=user_agents)
