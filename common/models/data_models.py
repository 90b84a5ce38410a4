"""
Data models for the relay system.
"""
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, List
from datetime import datetime
import threading


class RelayStats:
    """
    Running counters for the relay.
    Thread-safe: updated from the socket thread and the delivery pool.
    """

    FIELDS = (
        'connects',
        'disconnects',
        'messages_received',
        'malformed_messages',
        'news_items',
        'trade_messages',
        'deliveries_succeeded',
        'deliveries_failed',
    )

    def __init__(self):
        self._counts: Dict[str, int] = dict.fromkeys(self.FIELDS, 0)
        self.started_at = datetime.utcnow()
        self._lock = threading.Lock()

    def increment(self, name: str, amount: int = 1) -> int:
        """Thread-safe counter increment"""
        if name not in self._counts:
            raise KeyError(f"Unknown stat: {name}")
        with self._lock:
            self._counts[name] += amount
            return self._counts[name]

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def to_dict(self) -> Dict:
        with self._lock:
            counts = dict(self._counts)
        counts['started_at'] = self.started_at.isoformat() + 'Z'
        return counts


@dataclass
class NewsDelivery:
    """Webhook body for one upstream news item"""
    title: Optional[str]
    url: Optional[str]
    summary: Optional[str]
    content: Optional[str]
    published_date: Optional[str]
    source: Optional[str]
    related_tickers: List[str] = field(default_factory=list)
    category: Optional[str] = None
    finnhub_id: Optional[int] = None
    source_api: str = 'finnhub'
    received_at: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)
