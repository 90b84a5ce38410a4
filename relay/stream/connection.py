"""Upstream connection manager for the Finnhub WebSocket feed."""
from __future__ import annotations

import json
import logging
import re
import threading
from enum import Enum
from typing import Any, Callable, Dict, Optional

import websocket

from common.models.data_models import RelayStats
from relay.exceptions import MalformedFrameError, NotConnectedError
from relay.registry import SubscriptionRegistry
from relay.utils.structured_logging import get_logger

from .protocol import (
    MessageType,
    SubscriptionChannel,
    decode_frame,
    frame_items,
    pong_frame,
    subscribe_frame,
)

logger = logging.getLogger(__name__)
events = get_logger("relay.lifecycle")

DEFAULT_RECONNECT_DELAY = 5.0


class ConnectionState(str, Enum):
    """Lifecycle states of the single upstream connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def _redact(url: str) -> str:
    return re.sub(r"(token=)[^&]+", r"\1***", url)


class ReconnectTimer:
    """
    One-shot reconnect handle.

    cancel() is idempotent and a cancelled timer never invokes its callback.
    The callback receives the timer so the owner can tell which handle fired.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[["ReconnectTimer"], None],
        timer_factory: Callable[..., Any] = threading.Timer,
    ) -> None:
        self.delay = delay
        self._callback = callback
        self._lock = threading.Lock()
        self._cancelled = False
        self._fired = False
        self._timer = timer_factory(delay, self._fire)
        self._timer.daemon = True

    @property
    def pending(self) -> bool:
        with self._lock:
            return not (self._cancelled or self._fired)

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> bool:
        """Cancel the timer. Returns False if it already fired or was cancelled."""
        with self._lock:
            if self._cancelled or self._fired:
                return False
            self._cancelled = True
        self._timer.cancel()
        return True

    def _fire(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._fired = True
        self._callback(self)


def _default_ws_factory(url: str, **callbacks: Any) -> websocket.WebSocketApp:
    return websocket.WebSocketApp(url, **callbacks)


class UpstreamConnection:
    """
    Owns the single persistent connection to the Finnhub stream.

    State machine:
        DISCONNECTED -> CONNECTING -> CONNECTED -> (error/close) -> DISCONNECTED
        -> (after reconnect_delay) -> CONNECTING -> ...

    State changes and outbound frames are serialized by ``registry.lock`` so
    the control layer can mutate the registry and emit frames atomically with
    respect to replay-on-reconnect.
    """

    def __init__(
        self,
        url: str,
        registry: SubscriptionRegistry,
        forwarder=None,
        channel: SubscriptionChannel = SubscriptionChannel.NEWS,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        stats: Optional[RelayStats] = None,
        ws_factory: Callable[..., Any] = _default_ws_factory,
        timer_factory: Callable[..., Any] = threading.Timer,
        thread_factory: Callable[..., Any] = threading.Thread,
    ) -> None:
        self.url = url
        self.registry = registry
        self.forwarder = forwarder
        self.channel = channel
        self.reconnect_delay = reconnect_delay
        self.stats = stats if stats is not None else RelayStats()

        self._ws_factory = ws_factory
        self._timer_factory = timer_factory
        self._thread_factory = thread_factory

        self._lock = registry.lock
        self._ws = None
        self._thread = None
        self._state = ConnectionState.DISCONNECTED
        self._retry_timer: Optional[ReconnectTimer] = None
        self._shutdown = threading.Event()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return self._state is ConnectionState.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        with self._lock:
            return self._retry_timer is not None

    def start(self) -> None:
        self._shutdown.clear()
        self.connect()

    def connect(self) -> bool:
        """Open a new connection unless one already exists. Returns True if started."""
        with self._lock:
            if self._shutdown.is_set() or self._state is not ConnectionState.DISCONNECTED:
                return False

            self._state = ConnectionState.CONNECTING
            ws = self._ws_factory(
                self.url,
                on_open=self._on_open,
                on_message=self._on_message,
                on_error=self._on_error,
                on_close=self._on_close,
            )
            self._ws = ws
            thread = self._thread_factory(
                target=self._run,
                args=(ws,),
                name="finnhub-stream",
                daemon=True,
            )
            self._thread = thread

        logger.info("Connecting to %s", _redact(self.url))
        thread.start()
        return True

    def send(self, frame: Dict[str, Any]) -> None:
        """
        Send one frame on the live connection.

        Raises:
            NotConnectedError: If the connection is not open or the send fails
        """
        with self._lock:
            self._send_locked(frame)

    def stop(self) -> None:
        """Close the connection and stop reconnecting. In-flight deliveries are not drained."""
        self._shutdown.set()
        with self._lock:
            timer, self._retry_timer = self._retry_timer, None
            ws, self._ws = self._ws, None
            thread = self._thread
            self._state = ConnectionState.DISCONNECTED

        if timer is not None:
            timer.cancel()
        if ws is not None:
            try:
                ws.close()
            except Exception:
                logger.debug("Error closing upstream socket", exc_info=True)
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)
        logger.info("Upstream connection stopped")

    # ------------------------------------------------------------------
    # Socket callbacks
    # ------------------------------------------------------------------
    def _run(self, ws) -> None:
        try:
            ws.run_forever()
        except Exception:
            logger.exception("Upstream socket loop crashed")
        # run_forever returns once the socket is gone; close may not have fired
        self._handle_disconnect(ws, "socket loop exited")

    def _on_open(self, ws) -> None:
        with self._lock:
            if ws is not self._ws:
                logger.debug("Ignoring open event from stale socket")
                return

            if self._retry_timer is not None:
                self._retry_timer.cancel()
                self._retry_timer = None

            self._state = ConnectionState.CONNECTED
            self.stats.increment("connects")
            snapshot = self.registry.snapshot()
            events.info("upstream_connected", replaying=snapshot.count)

            try:
                for symbol in snapshot:
                    self._send_locked(subscribe_frame(symbol, self.channel))
            except NotConnectedError as exc:
                logger.warning("Subscription replay interrupted: %s", exc)

    def _on_message(self, ws, message) -> None:
        if ws is not self._ws:
            return
        self.stats.increment("messages_received")

        try:
            frame = decode_frame(message)
        except MalformedFrameError as exc:
            self.stats.increment("malformed_messages")
            logger.warning("Skipping malformed upstream message: %s", exc)
            return

        try:
            self._dispatch(frame)
        except Exception:
            logger.exception("Error handling upstream %s message", frame.get("type"))

    def _on_error(self, ws, error) -> None:
        logger.error("Upstream WebSocket error: %s", error)
        self._handle_disconnect(ws, f"error: {error}")

    def _on_close(self, ws, close_status_code=None, close_msg=None) -> None:
        logger.info("Upstream WebSocket closed: %s - %s", close_status_code, close_msg)
        self._handle_disconnect(ws, f"closed: {close_status_code}")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _dispatch(self, frame: Dict[str, Any]) -> None:
        msg_type = frame["type"]

        if msg_type == MessageType.NEWS.value:
            items = frame_items(frame)
            self.stats.increment("news_items", len(items))
            logger.info("Received %d news items", len(items))
            if self.forwarder is not None and items:
                self.forwarder.forward(items)

        elif msg_type == MessageType.PING.value:
            try:
                self.send(pong_frame())
            except NotConnectedError as exc:
                logger.debug("Could not answer ping: %s", exc)

        elif msg_type == MessageType.TRADE.value:
            self.stats.increment("trade_messages")
            logger.debug("Trade update for %d symbols", len(frame_items(frame)))

        elif msg_type == MessageType.ERROR.value:
            logger.warning("Upstream reported error: %s", frame.get("msg"))

        else:
            logger.debug("Ignoring upstream message type %s", msg_type)

    def _send_locked(self, frame: Dict[str, Any]) -> None:
        if self._state is not ConnectionState.CONNECTED or self._ws is None:
            raise NotConnectedError()
        try:
            self._ws.send(json.dumps(frame))
        except (websocket.WebSocketException, OSError) as exc:
            raise NotConnectedError(f"Send failed: {exc}") from exc

    def _handle_disconnect(self, ws, reason: str) -> None:
        with self._lock:
            if self._ws is not None and ws is not self._ws:
                logger.debug("Ignoring %s from stale socket", reason)
                return

            dropped = self._ws
            previous = self._state
            self._ws = None
            self._state = ConnectionState.DISCONNECTED
            if previous is not ConnectionState.DISCONNECTED:
                self.stats.increment("disconnects")
                events.warning("upstream_disconnected", reason=reason)

            if not self._shutdown.is_set():
                self._schedule_reconnect()

        # error events can leave the socket open
        if dropped is not None:
            try:
                dropped.close()
            except Exception:
                logger.debug("Error closing dropped upstream socket", exc_info=True)

    def _schedule_reconnect(self) -> None:
        if self._retry_timer is not None:
            logger.debug("Reconnect already scheduled")
            return

        timer = ReconnectTimer(self.reconnect_delay, self._on_retry_timer, self._timer_factory)
        self._retry_timer = timer
        timer.start()
        logger.info("Reconnecting in %ss", self.reconnect_delay)

    def _on_retry_timer(self, timer: ReconnectTimer) -> None:
        with self._lock:
            if self._retry_timer is not timer:
                return
            self._retry_timer = None
        self.connect()
