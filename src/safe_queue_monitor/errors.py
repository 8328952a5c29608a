"""Exception types raised by the monitor."""
from __future__ import annotations


class MonitorError(Exception):
    """Base exception for the safe queue monitor."""


class ConfigurationError(MonitorError):
    """Invalid or missing configuration. Fatal for a run."""


class SafeApiError(MonitorError):
    """A request to the Safe transaction service failed."""

    def __init__(self, message: str, address: str, chain: str) -> None:
        super().__init__(message)
        self.address = address
        self.chain = chain


class NotificationError(MonitorError):
    """Delivery to a single notification channel failed."""

    def __init__(self, message: str, channel_type: str) -> None:
        super().__init__(message)
        self.channel_type = channel_type
