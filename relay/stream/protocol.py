"""
Finnhub WebSocket frame helpers.

Outbound frames are plain dicts serialized with json.dumps by the connection.
Inbound frames are JSON objects discriminated by their ``type`` field.
"""
import json
from enum import Enum
from typing import Any, Dict, List, Union

from relay.exceptions import MalformedFrameError


class MessageType(str, Enum):
    """Inbound frame types the relay reacts to."""

    NEWS = "news"
    TRADE = "trade"
    PING = "ping"
    ERROR = "error"


class SubscriptionChannel(str, Enum):
    """Which Finnhub stream the subscription frames address."""

    TRADES = "trades"
    NEWS = "news"

    @property
    def subscribe_type(self) -> str:
        return "subscribe-news" if self is SubscriptionChannel.NEWS else "subscribe"

    @property
    def unsubscribe_type(self) -> str:
        return "unsubscribe-news" if self is SubscriptionChannel.NEWS else "unsubscribe"


def subscribe_frame(symbol: str, channel: SubscriptionChannel = SubscriptionChannel.NEWS) -> Dict[str, str]:
    return {"type": channel.subscribe_type, "symbol": symbol}


def unsubscribe_frame(symbol: str, channel: SubscriptionChannel = SubscriptionChannel.NEWS) -> Dict[str, str]:
    return {"type": channel.unsubscribe_type, "symbol": symbol}


def pong_frame() -> Dict[str, str]:
    return {"type": "pong"}


def decode_frame(raw: Union[str, bytes]) -> Dict[str, Any]:
    """
    Decode one inbound frame.

    Args:
        raw: Text or binary payload received from the socket

    Returns:
        Decoded JSON object containing at least a string ``type``

    Raises:
        MalformedFrameError: If the payload is not a JSON object with a type
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedFrameError(f"Undecodable frame: {exc}") from exc

    if not isinstance(data, dict):
        raise MalformedFrameError(f"Expected JSON object, got {type(data).__name__}")
    if not isinstance(data.get("type"), str):
        raise MalformedFrameError("Frame has no 'type' field")
    return data


def frame_items(frame: Dict[str, Any]) -> List[Any]:
    """Return the ``data`` list of a data-event frame, empty if missing."""
    items = frame.get("data")
    if isinstance(items, list):
        return items
    return []
