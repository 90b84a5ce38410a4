"""Exception hierarchy for the relay service."""
from __future__ import annotations


class RelayError(Exception):
    """Base class for relay errors."""


class NotConnectedError(RelayError):
    """Raised when a frame must be sent but the upstream socket is not open."""

    def __init__(self, message: str = "WebSocket not connected") -> None:
        super().__init__(message)


class SubscriptionError(RelayError):
    """Base class for rejected registry mutations."""


class InvalidSubscriptionError(SubscriptionError):
    """Input had the wrong shape or contained an invalid symbol."""


class CapacityExceededError(SubscriptionError):
    """Mutation would push the registry past its configured maximum."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Tickers must be an array with max {limit} symbols")


class MalformedFrameError(RelayError):
    """Inbound upstream payload could not be decoded."""
