"""Data models for the subscription registry."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

WILDCARD = "*"


class SubscriptionMode(str, Enum):
    """What the upstream connection is currently asked to stream."""

    ALL_NEWS = "all_news"
    TICKER_SPECIFIC = "ticker_specific"


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """Immutable point-in-time copy of the subscription set."""

    symbols: Tuple[str, ...] = ()

    @property
    def count(self) -> int:
        return len(self.symbols)

    @property
    def mode(self) -> SubscriptionMode:
        if self.symbols == (WILDCARD,):
            return SubscriptionMode.ALL_NEWS
        return SubscriptionMode.TICKER_SPECIFIC

    def __contains__(self, symbol: object) -> bool:
        return symbol in self.symbols

    def __iter__(self):
        return iter(self.symbols)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "active_symbols": list(self.symbols),
            "count": self.count,
        }


@dataclass(frozen=True)
class SubscriptionDelta:
    """Symbols that left and arrived during one registry mutation."""

    added: Tuple[str, ...] = field(default_factory=tuple)
    removed: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def empty(self) -> bool:
        return not self.added and not self.removed
