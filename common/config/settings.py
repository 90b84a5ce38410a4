"""
Configuration settings for the relay.
Centralizes all configurable parameters for the stream, webhook and API.
"""
import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


@dataclass
class ServerConfig:
    """Control API listener configuration"""
    host: Optional[str] = None
    port: Optional[int] = None

    def __post_init__(self):
        self.host = self.host or os.getenv('RELAY_HOST', '0.0.0.0')
        self.port = self.port or int(os.getenv('PORT', '3000'))


@dataclass
class FinnhubConfig:
    """Finnhub WebSocket configuration"""
    api_key: Optional[str] = None
    ws_url: Optional[str] = None
    channel: Optional[str] = None

    def __post_init__(self):
        if self.api_key is None:
            self.api_key = os.getenv('FINNHUB_API_KEY')
        self.ws_url = self.ws_url or os.getenv('FINNHUB_WS_URL', 'wss://ws.finnhub.io')
        self.channel = (self.channel or os.getenv('FINNHUB_CHANNEL', 'news')).lower()

    @property
    def stream_url(self) -> str:
        """WebSocket URL with the token query parameter"""
        separator = '&' if '?' in self.ws_url else '?'
        return f"{self.ws_url}{separator}token={self.api_key or ''}"


@dataclass
class WebhookConfig:
    """Downstream webhook configuration"""
    url: Optional[str] = None
    timeout: float = 10.0
    max_workers: int = 8
    source_api: str = 'finnhub'

    def __post_init__(self):
        if self.url is None:
            self.url = os.getenv('WEBHOOK_URL')
        self.timeout = float(os.getenv('WEBHOOK_TIMEOUT', self.timeout))
        self.max_workers = int(os.getenv('WEBHOOK_MAX_WORKERS', self.max_workers))


@dataclass
class StreamConfig:
    """Subscription and reconnect configuration"""
    reconnect_delay: float = 5.0
    max_subscriptions: int = 50

    def __post_init__(self):
        self.reconnect_delay = float(os.getenv('RECONNECT_DELAY_SECONDS', self.reconnect_delay))
        self.max_subscriptions = int(os.getenv('MAX_SUBSCRIPTIONS', self.max_subscriptions))


@dataclass
class RelayConfig:
    """Complete relay configuration"""
    server: ServerConfig
    finnhub: FinnhubConfig
    webhook: WebhookConfig
    stream: StreamConfig
    debug: bool = False

    @classmethod
    def default(cls):
        """Create default configuration"""
        return cls(
            server=ServerConfig(),
            finnhub=FinnhubConfig(),
            webhook=WebhookConfig(),
            stream=StreamConfig(),
            debug=os.getenv('DEBUG', 'false').lower() == 'true'
        )
