"""In-memory registry of the symbols the upstream feed should be subscribed to."""
from __future__ import annotations

import logging
import re
import threading
from typing import Dict, Iterable, List

from relay.exceptions import CapacityExceededError, InvalidSubscriptionError

from .models import WILDCARD, SubscriptionDelta, SubscriptionSnapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_SUBSCRIPTIONS = 50

_SYMBOL_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9.:/_\-]{0,19}$")


def normalize_symbol(symbol: object) -> str:
    """
    Normalize a symbol to its canonical uppercase form.

    Args:
        symbol: Raw symbol from a request

    Returns:
        Uppercase symbol or the wildcard sentinel

    Raises:
        InvalidSubscriptionError: If the symbol is not a valid ticker string
    """
    if not isinstance(symbol, str):
        raise InvalidSubscriptionError(f"Symbol must be a string, got {type(symbol).__name__}")

    normalized = symbol.strip().upper()
    if normalized == WILDCARD:
        return normalized
    if not _SYMBOL_PATTERN.match(normalized):
        raise InvalidSubscriptionError(f"Invalid symbol: {symbol!r}")
    return normalized


class SubscriptionRegistry:
    """
    Single source of truth for what the upstream connection should stream.

    Symbols are kept in insertion order so replay-on-reconnect is
    deterministic. The wildcard sentinel and individual tickers are mutually
    exclusive: whichever was requested last wins.

    Every mutation returns a SubscriptionDelta; the registry never talks to
    the upstream connection itself. Callers that must keep the registry and
    the socket consistent hold ``registry.lock`` across both steps.
    """

    def __init__(self, max_subscriptions: int = DEFAULT_MAX_SUBSCRIPTIONS) -> None:
        if max_subscriptions < 1:
            raise ValueError("max_subscriptions must be positive")
        self.max_subscriptions = max_subscriptions
        self.lock = threading.RLock()
        # dict preserves insertion order
        self._symbols: Dict[str, None] = {}

    def __len__(self) -> int:
        with self.lock:
            return len(self._symbols)

    def __contains__(self, symbol: object) -> bool:
        with self.lock:
            return symbol in self._symbols

    @property
    def wildcard_active(self) -> bool:
        with self.lock:
            return WILDCARD in self._symbols

    def snapshot(self) -> SubscriptionSnapshot:
        """Return an immutable copy of the current set."""
        with self.lock:
            return SubscriptionSnapshot(tuple(self._symbols))

    def add(self, symbol: str) -> SubscriptionDelta:
        """
        Add one symbol.

        Adding a ticker while the wildcard is active replaces the wildcard.
        Adding the wildcard behaves like subscribe_all().

        Raises:
            InvalidSubscriptionError: If the symbol is invalid
            CapacityExceededError: If the registry is full
        """
        symbol = normalize_symbol(symbol)
        if symbol == WILDCARD:
            return self.subscribe_all()

        with self.lock:
            if symbol in self._symbols:
                return SubscriptionDelta()

            removed: List[str] = [WILDCARD] if WILDCARD in self._symbols else []
            if len(self._symbols) - len(removed) >= self.max_subscriptions:
                raise CapacityExceededError(self.max_subscriptions)

            if removed:
                del self._symbols[WILDCARD]
                logger.info("Leaving all-news mode for %s", symbol)
            self._symbols[symbol] = None
            logger.debug("Added %s (%d active)", symbol, len(self._symbols))
            return SubscriptionDelta(added=(symbol,), removed=tuple(removed))

    def validate(self, symbols: Iterable[str]) -> List[str]:
        """
        Check a bulk request without touching the registry.

        Returns:
            Normalized, de-duplicated symbols in request order

        Raises:
            InvalidSubscriptionError: If the input is not a list of valid symbols,
                or mixes the wildcard with tickers
            CapacityExceededError: If the list holds more than max_subscriptions entries
        """
        if not isinstance(symbols, (list, tuple)):
            raise InvalidSubscriptionError(
                f"Tickers must be an array with max {self.max_subscriptions} symbols"
            )
        if len(symbols) > self.max_subscriptions:
            raise CapacityExceededError(self.max_subscriptions)

        normalized = list(dict.fromkeys(normalize_symbol(raw) for raw in symbols))
        if WILDCARD in normalized and len(normalized) > 1:
            raise InvalidSubscriptionError("Wildcard '*' cannot be combined with individual tickers")
        return normalized

    def replace_all(self, symbols: Iterable[str]) -> SubscriptionDelta:
        """
        Atomically replace the whole set.

        The input is validated in full before anything changes, so a rejected
        call leaves the registry untouched.

        Raises:
            InvalidSubscriptionError: If the input is not a list of valid symbols,
                or mixes the wildcard with tickers
            CapacityExceededError: If more than max_subscriptions unique symbols
        """
        incoming = dict.fromkeys(self.validate(symbols))

        with self.lock:
            removed = tuple(s for s in self._symbols if s not in incoming)
            added = tuple(s for s in incoming if s not in self._symbols)
            self._symbols = incoming
            logger.info(
                "Replaced subscriptions: %d active (+%d/-%d)",
                len(incoming), len(added), len(removed),
            )
            return SubscriptionDelta(added=added, removed=removed)

    def subscribe_all(self) -> SubscriptionDelta:
        """Switch to wildcard mode, dropping every individual ticker."""
        return self.replace_all([WILDCARD])

    def remove(self, symbol: str) -> SubscriptionDelta:
        """Remove one symbol; no-op if absent."""
        symbol = normalize_symbol(symbol)
        with self.lock:
            if symbol not in self._symbols:
                return SubscriptionDelta()
            del self._symbols[symbol]
            logger.debug("Removed %s (%d active)", symbol, len(self._symbols))
            return SubscriptionDelta(removed=(symbol,))

    def clear(self) -> SubscriptionDelta:
        """Remove every symbol."""
        with self.lock:
            removed = tuple(self._symbols)
            self._symbols = {}
            if removed:
                logger.info("Cleared %d subscriptions", len(removed))
            return SubscriptionDelta(removed=removed)

    def restore(self, snapshot: SubscriptionSnapshot) -> None:
        """Put back a previous snapshot, used to roll back a failed mutation."""
        with self.lock:
            self._symbols = dict.fromkeys(snapshot.symbols)
            logger.debug("Restored %d subscriptions", len(self._symbols))
