"""Proxy endpoint package — health registry and score-based selection."""

from embedrelay.proxy.registry import ProxyHealthRegistry
from embedrelay.proxy.selector import ProxySelector
from embedrelay.proxy.types import ProxyEndpoint, ProxyHealthRecord

__all__ = ["ProxyEndpoint", "ProxyHealthRecord", "ProxyHealthRegistry", "ProxySelector"]
