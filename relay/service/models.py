"""Pydantic and dataclass models for the relay control API."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class BulkSubscribeRequest(BaseModel):
    """Body of POST /subscribe-bulk.

    ``tickers`` is left untyped so shape errors surface as the relay's own
    400 response rather than FastAPI's 422.
    """

    tickers: Any = None


@dataclass
class SubscriptionResult:
    """Outcome of a subscription mutation."""

    message: str
    active_symbols: List[str] = field(default_factory=list)
    success: bool = True

    def to_dict(self) -> Dict:
        return {
            "success": self.success,
            "message": self.message,
            "active_symbols": self.active_symbols,
        }


@dataclass
class RelayStatus:
    """Snapshot of the relay for GET /."""

    connected: bool
    connection_state: str
    active_symbols: List[str]
    mode: str
    stats: Optional[Dict] = None
    service: str = "finnhub-webhook-relay"

    def to_dict(self) -> Dict:
        return {
            "status": "running",
            "service": self.service,
            "connected": self.connected,
            "connection_state": self.connection_state,
            "active_symbols": self.active_symbols,
            "mode": self.mode,
            "stats": self.stats or {},
        }
