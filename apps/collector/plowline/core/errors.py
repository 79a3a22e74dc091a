"""Exception hierarchy for the collector."""
from __future__ import annotations


class PlowlineError(Exception):
    """Base class for collector errors."""


class ConfigurationError(PlowlineError):
    """Raised for invalid configuration values; fatal at startup."""


class DuplicateSubscriberError(PlowlineError):
    """Raised when a subscriber id is registered twice."""

    def __init__(self, subscriber_id: str) -> None:
        self.subscriber_id = subscriber_id
        super().__init__(f"Subscriber {subscriber_id!r} is already registered")


class DeliveryError(PlowlineError):
    """Raised by a sink when a message cannot be delivered."""
