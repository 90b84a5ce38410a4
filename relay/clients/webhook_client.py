"""
Webhook delivery client.
Fire-and-forget POST of each news item to the downstream consumer.
"""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import requests
from requests.adapters import HTTPAdapter

from common.models.data_models import RelayStats

from .news_mapper import map_news_item

logger = logging.getLogger(__name__)


class WebhookForwarder:
    """
    Posts mapped news items to a configured webhook URL.

    Features:
    - HTTP connection pooling via a shared requests session
    - One POST per item, submitted to a thread pool so the socket thread
      never blocks on delivery
    - No retries: network errors and non-2xx responses are logged and counted
    """

    def __init__(self, url: Optional[str], timeout: float = 10.0, max_workers: int = 8,
                 source_api: str = 'finnhub', stats: Optional[RelayStats] = None,
                 session: Optional[requests.Session] = None,
                 executor: Optional[ThreadPoolExecutor] = None):
        """
        Initialize webhook forwarder.

        Args:
            url: Destination webhook URL (None disables delivery)
            timeout: Request timeout in seconds
            max_workers: Concurrent deliveries
            source_api: Value stamped into every body's source_api field
            stats: Shared relay counters
            session: Optional pre-built session (tests)
            executor: Optional executor (tests)
        """
        self.url = url
        self.timeout = timeout
        self.source_api = source_api
        self.stats = stats if stats is not None else RelayStats()

        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=max_workers, pool_maxsize=max_workers, max_retries=0)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        self.session = session
        if executor is None:
            executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="webhook")
        self._executor = executor

        if not url:
            logger.warning("WEBHOOK_URL not configured; news items will be logged and dropped")

    def forward(self, items: Iterable[Any]) -> List[Future]:
        """
        Map and submit each item for delivery. Returns immediately.

        Args:
            items: Raw news items from one upstream frame

        Returns:
            Futures for the submitted deliveries
        """
        received_at = datetime.now(timezone.utc)
        futures = []

        for item in items:
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-object news item: {item!r}")
                continue

            payload = map_news_item(item, received_at, self.source_api).to_dict()
            if not self.url:
                logger.info(f"No webhook configured, dropping: {payload['title']}")
                continue

            futures.append(self._executor.submit(self.deliver, payload))

        return futures

    def deliver(self, payload: Dict[str, Any]) -> bool:
        """
        POST one payload. Never raises.

        Returns:
            True on a 2xx response
        """
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            self.stats.increment('deliveries_failed')
            logger.error(f"Webhook rejected '{payload.get('title')}': {e}")
            return False
        except requests.RequestException as e:
            self.stats.increment('deliveries_failed')
            logger.error(f"Webhook delivery failed for '{payload.get('title')}': {e}")
            return False

        self.stats.increment('deliveries_succeeded')
        logger.info(f"Sent to webhook: {payload.get('title')}")
        return True

    def close(self):
        """Stop accepting deliveries and close the HTTP session"""
        self._executor.shutdown(wait=False)
        self.session.close()
        logger.info("Closed webhook session")
