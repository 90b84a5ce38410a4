"""Subscription registry for the upstream stream."""
from .models import WILDCARD, SubscriptionDelta, SubscriptionMode, SubscriptionSnapshot
from .manager import SubscriptionRegistry, normalize_symbol

__all__ = [
    "WILDCARD",
    "SubscriptionDelta",
    "SubscriptionMode",
    "SubscriptionSnapshot",
    "SubscriptionRegistry",
    "normalize_symbol",
]
