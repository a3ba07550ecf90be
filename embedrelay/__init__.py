"""Relay-endpoint health scoring and embedded video session orchestration."""

__version__ = "1.0.0"
