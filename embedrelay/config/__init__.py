"""Configuration module — settings and the endpoint catalogue."""

from embedrelay.config.endpoints import (
    EndpointCatalog,
    EndpointSpec,
    default_catalog,
    load_endpoint_catalog,
)
from embedrelay.config.settings import RelaySettings

__all__ = [
    "EndpointCatalog",
    "EndpointSpec",
    "RelaySettings",
    "default_catalog",
    "load_endpoint_catalog",
]
