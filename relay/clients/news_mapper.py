"""
Finnhub news item to webhook body mapping.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from common.models.data_models import NewsDelivery

logger = logging.getLogger(__name__)


def _iso_from_epoch(value: Any) -> Optional[str]:
    """Convert Finnhub's epoch-seconds timestamp to ISO-8601 UTC."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc).isoformat()
    except (TypeError, ValueError, OverflowError, OSError):
        logger.debug(f"Unparseable news timestamp: {value!r}")
        return None


def _split_related(related: Any) -> List[str]:
    """Finnhub sends related tickers as a comma separated string."""
    if isinstance(related, list):
        parts = related
    elif isinstance(related, str):
        parts = related.split(',')
    else:
        return []
    return [str(p).strip().upper() for p in parts if str(p).strip()]


def map_news_item(item: Dict[str, Any], received_at: Optional[datetime] = None,
                  source_api: str = 'finnhub') -> NewsDelivery:
    """
    Map one upstream news item to the downstream webhook shape.

    Args:
        item: Finnhub news item (headline, url, summary, datetime, source,
            related, category, id)
        received_at: When the frame arrived (defaults to now, UTC)
        source_api: Value for the source_api field

    Returns:
        NewsDelivery ready to serialize
    """
    received_at = received_at or datetime.now(timezone.utc)
    if received_at.tzinfo is None:
        received_at = received_at.replace(tzinfo=timezone.utc)

    summary = item.get('summary')
    return NewsDelivery(
        title=item.get('headline'),
        url=item.get('url'),
        summary=summary,
        content=summary,
        published_date=_iso_from_epoch(item.get('datetime')),
        source=item.get('source'),
        related_tickers=_split_related(item.get('related')),
        category=item.get('category'),
        finnhub_id=item.get('id'),
        source_api=source_api,
        received_at=received_at.isoformat(),
    )
