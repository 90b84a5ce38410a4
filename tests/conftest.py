"""Test fixtures for relay tests."""
from concurrent.futures import Future
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest
import requests

from common.models.data_models import RelayStats
from relay.registry import SubscriptionRegistry
from relay.stream import UpstreamConnection


# Mock classes (importable for direct instantiation in tests)
class MockWebSocketApp:
    """Stand-in for websocket.WebSocketApp; tests drive the callbacks by hand."""

    def __init__(self, url: str, on_open=None, on_message=None, on_error=None, on_close=None):
        self.url = url
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self.sent: List[str] = []
        self.closed = False
        self.fail_sends = False

    def run_forever(self, **kwargs):
        pass

    def send(self, data: str):
        if self.fail_sends:
            import websocket
            raise websocket.WebSocketConnectionClosedException("socket is already closed.")
        self.sent.append(data)

    def close(self, **kwargs):
        self.closed = True

    # Event helpers
    def open(self):
        self.on_open(self)

    def receive(self, message: str):
        self.on_message(self, message)

    def error(self, error: Exception):
        self.on_error(self, error)

    def drop(self, code: Optional[int] = 1006, msg: str = ""):
        self.on_close(self, code, msg)

    @property
    def frames(self) -> List[Dict[str, Any]]:
        import json
        return [json.loads(raw) for raw in self.sent]


class MockTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval: float, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


class MockThread:
    """Stand-in for threading.Thread that never runs its target."""

    def __init__(self, target=None, args=(), name=None, daemon=None):
        self.target = target
        self.args = args
        self.name = name
        self.daemon = daemon
        self.started = False

    def start(self):
        self.started = True

    def join(self, timeout=None):
        pass


class RecordingFactory:
    """Callable that builds objects of ``cls`` and remembers them."""

    def __init__(self, cls):
        self.cls = cls
        self.created: List[Any] = []

    def __call__(self, *args, **kwargs):
        obj = self.cls(*args, **kwargs)
        self.created.append(obj)
        return obj

    @property
    def last(self):
        return self.created[-1]


class MockForwarder:
    """Records forwarded news batches."""

    def __init__(self):
        self.batches: List[List[Any]] = []

    def forward(self, items):
        self.batches.append(list(items))
        return []

    def close(self):
        pass


class MockResponse:
    def __init__(self, status_code: int = 200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class MockWebhookSession:
    """Mock requests session recording POSTs."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.posts: List[Dict[str, Any]] = []
        self.responses = list(responses or [])
        self.closed = False

    def post(self, url: str, json=None, timeout=None):
        self.posts.append({
            'url': url,
            'json': json,
            'timeout': timeout,
            'timestamp': datetime.utcnow()
        })
        outcome = self.responses.pop(0) if self.responses else MockResponse(200)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


class ImmediateExecutor:
    """Executor that runs submitted work inline."""

    def __init__(self):
        self.submitted = 0
        self.shut_down = False

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait=True):
        self.shut_down = True


# Fixtures
@pytest.fixture
def registry():
    return SubscriptionRegistry(max_subscriptions=50)


@pytest.fixture
def stats():
    return RelayStats()


@pytest.fixture
def ws_factory():
    return RecordingFactory(MockWebSocketApp)


@pytest.fixture
def timer_factory():
    return RecordingFactory(MockTimer)


@pytest.fixture
def forwarder():
    return MockForwarder()


@pytest.fixture
def connection(registry, forwarder, stats, ws_factory, timer_factory):
    """Upstream connection wired to mock socket, timer and thread factories."""
    return UpstreamConnection(
        url="wss://ws.finnhub.io?token=test_key",
        registry=registry,
        forwarder=forwarder,
        reconnect_delay=5,
        stats=stats,
        ws_factory=ws_factory,
        timer_factory=timer_factory,
        thread_factory=MockThread,
    )


@pytest.fixture
def sample_news_item():
    """Finnhub news item as delivered on the stream."""
    return {
        'category': 'company',
        'datetime': 1700000000,
        'headline': 'Apple unveils new product line',
        'id': 123456,
        'image': '',
        'related': 'AAPL',
        'source': 'Reuters',
        'summary': 'Apple announced a new product line on Tuesday.',
        'url': 'https://example.com/apple-news'
    }
