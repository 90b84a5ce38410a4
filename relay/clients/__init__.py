"""
Downstream delivery clients
"""
from .news_mapper import map_news_item
from .webhook_client import WebhookForwarder

__all__ = [
    'map_news_item',
    'WebhookForwarder'
]
