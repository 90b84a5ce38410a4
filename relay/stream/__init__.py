"""Upstream stream connection and frame protocol."""
from .connection import ConnectionState, ReconnectTimer, UpstreamConnection
from .protocol import MessageType, SubscriptionChannel

__all__ = [
    "ConnectionState",
    "ReconnectTimer",
    "UpstreamConnection",
    "MessageType",
    "SubscriptionChannel",
]
