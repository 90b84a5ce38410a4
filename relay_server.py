#!/usr/bin/env python3
"""
Finnhub Webhook Relay - Entry Point

Keeps one WebSocket connection to Finnhub open, replays subscriptions on
every reconnect, forwards news items to a webhook and serves the REST
control API.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv

from common.config.settings import RelayConfig
from relay.service import RelayService
from relay.service.api import app, get_service
from relay.utils.structured_logging import get_logger

# ---------------------------------------------------------------------------
# Environment & logging configuration
# All configuration loaded from .env file:
#   - FINNHUB_API_KEY: Finnhub API token (required)
#   - WEBHOOK_URL: Downstream webhook receiving news items
#   - PORT: Control API port (default: 3000)
#   - FINNHUB_CHANNEL: "news" or "trades" subscription frames (default: news)
#   - RECONNECT_DELAY_SECONDS / MAX_SUBSCRIPTIONS
#   - LOG_LEVEL: Logging level (default: INFO)
# ---------------------------------------------------------------------------
load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(threadName)-15s] %(name)s - %(levelname)s - %(message)s",
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Finnhub to webhook relay")
    parser.add_argument("--host", type=str, default=None, help="Control API host (default: $RELAY_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Control API port (default: $PORT or 3000)")
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=LOG_LEVEL if LOG_LEVEL in {"DEBUG", "INFO", "WARNING", "ERROR"} else "INFO",
        help="Set logging level",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.getLogger().setLevel(getattr(logging, args.log_level))
    events = get_logger("relay.lifecycle", level=getattr(logging, args.log_level))

    config = RelayConfig.default()
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port

    if not config.finnhub.api_key:
        events.error("missing_finnhub_api_key", error="Set FINNHUB_API_KEY environment variable")
        return 1

    # Startup/shutdown hooks on the app pick this instance up
    setattr(get_service, "_instance", RelayService(config=config))

    log = events.bind(host=config.server.host, port=config.server.port)
    log.info(
        "relay_starting",
        channel=config.finnhub.channel,
        webhook_configured=bool(config.webhook.url),
        max_subscriptions=config.stream.max_subscriptions,
    )

    # uvicorn traps SIGINT/SIGTERM and runs the shutdown hook, which closes
    # the upstream socket without draining in-flight deliveries
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_level=args.log_level.lower())
    log.info("relay_stopped")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        sys.exit(0)
