"""Core implementation of the relay service."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from common.config.settings import RelayConfig
from common.models.data_models import RelayStats
from relay.clients import WebhookForwarder
from relay.exceptions import NotConnectedError
from relay.registry import SubscriptionDelta, SubscriptionRegistry, SubscriptionSnapshot
from relay.stream import SubscriptionChannel, UpstreamConnection
from relay.stream.protocol import subscribe_frame, unsubscribe_frame
from relay.utils.structured_logging import get_logger

from .models import RelayStatus, SubscriptionResult

logger = logging.getLogger(__name__)
events = get_logger("relay.lifecycle")


class RelayService:
    """High-level façade owning the registry, upstream connection and forwarder.

    Every mutating call holds ``registry.lock`` while it checks connectivity,
    mutates the registry and sends the delta's frames, so a reconnect replay
    can never interleave with a half-applied change.
    """

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        registry: Optional[SubscriptionRegistry] = None,
        connection: Optional[UpstreamConnection] = None,
        forwarder: Optional[WebhookForwarder] = None,
        stats: Optional[RelayStats] = None,
    ) -> None:
        self.config = config if config is not None else RelayConfig.default()
        self.stats = stats if stats is not None else RelayStats()
        # an empty registry is falsy
        if registry is None:
            registry = SubscriptionRegistry(self.config.stream.max_subscriptions)
        self.registry = registry

        webhook = self.config.webhook
        self.forwarder = forwarder if forwarder is not None else WebhookForwarder(
            url=webhook.url,
            timeout=webhook.timeout,
            max_workers=webhook.max_workers,
            source_api=webhook.source_api,
            stats=self.stats,
        )
        self.connection = connection if connection is not None else UpstreamConnection(
            url=self.config.finnhub.stream_url,
            registry=self.registry,
            forwarder=self.forwarder,
            channel=SubscriptionChannel(self.config.finnhub.channel),
            reconnect_delay=self.config.stream.reconnect_delay,
            stats=self.stats,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        events.info(
            "relay_service_started",
            channel=self.connection.channel.value,
            active_symbols=len(self.registry),
        )
        self.connection.start()

    def shutdown(self) -> None:
        self.connection.stop()
        self.forwarder.close()
        events.info("relay_service_stopped", stats=self.stats.to_dict())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    def subscriptions(self) -> SubscriptionSnapshot:
        return self.registry.snapshot()

    def status(self) -> RelayStatus:
        snapshot = self.registry.snapshot()
        return RelayStatus(
            connected=self.connection.is_connected,
            connection_state=self.connection.state.value,
            active_symbols=list(snapshot.symbols),
            mode=snapshot.mode.value,
            stats=self.stats.to_dict(),
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def subscribe(self, symbol: str) -> SubscriptionResult:
        with self.registry.lock:
            self._require_connection()
            delta = self._apply(lambda: self.registry.add(symbol))
            snapshot = self.registry.snapshot()
        return SubscriptionResult(
            message=f"Subscribed to {delta.added[0]}" if delta.added else "Already subscribed",
            active_symbols=list(snapshot.symbols),
        )

    def subscribe_bulk(self, symbols: Iterable[str]) -> SubscriptionResult:
        # Shape and capacity are rejected before connectivity is considered
        tickers = self.registry.validate(symbols)
        with self.registry.lock:
            self._require_connection()
            self._apply(lambda: self.registry.replace_all(tickers))
            snapshot = self.registry.snapshot()
        return SubscriptionResult(
            message=f"Subscribed to {len(symbols)} symbols",
            active_symbols=list(snapshot.symbols),
        )

    def subscribe_all(self) -> SubscriptionResult:
        with self.registry.lock:
            self._require_connection()
            self._apply(self.registry.subscribe_all)
            snapshot = self.registry.snapshot()
        return SubscriptionResult(
            message="Subscribed to all news",
            active_symbols=list(snapshot.symbols),
        )

    def unsubscribe(self, symbol: str) -> SubscriptionResult:
        with self.registry.lock:
            self._require_connection()
            delta = self._apply(lambda: self.registry.remove(symbol))
            snapshot = self.registry.snapshot()
        return SubscriptionResult(
            message=f"Unsubscribed from {delta.removed[0]}" if delta.removed else "Not subscribed",
            active_symbols=list(snapshot.symbols),
        )

    def unsubscribe_all(self) -> SubscriptionResult:
        with self.registry.lock:
            self._require_connection()
            self._apply(self.registry.clear)
        return SubscriptionResult(message="Unsubscribed from all symbols", active_symbols=[])

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require_connection(self) -> None:
        if not self.connection.is_connected:
            raise NotConnectedError()

    def _apply(self, mutation) -> SubscriptionDelta:
        """Run a registry mutation and emit its frames; roll back if sending fails.

        Must be called with ``registry.lock`` held.
        """
        previous = self.registry.snapshot()
        delta = mutation()
        try:
            self._emit(delta)
        except NotConnectedError:
            self.registry.restore(previous)
            logger.warning("Upstream dropped while applying subscription change; rolled back")
            raise
        return delta

    def _emit(self, delta: SubscriptionDelta) -> None:
        channel = self.connection.channel
        frames: List[dict] = [unsubscribe_frame(s, channel) for s in delta.removed]
        frames.extend(subscribe_frame(s, channel) for s in delta.added)
        for frame in frames:
            self.connection.send(frame)
        if frames:
            logger.info("Sent %d subscription frames (+%d/-%d)",
                        len(frames), len(delta.added), len(delta.removed))
