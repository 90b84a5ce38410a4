"""FastAPI application exposing the relay control surface."""
from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from relay.exceptions import NotConnectedError, SubscriptionError

from .core import RelayService
from .models import BulkSubscribeRequest

logger = logging.getLogger(__name__)


def get_service() -> RelayService:
    service = getattr(get_service, "_instance", None)
    if service is None:
        service = RelayService()
        setattr(get_service, "_instance", service)
    return service


app = FastAPI(title="Finnhub Webhook Relay", version="1.0.0")


@app.exception_handler(NotConnectedError)
async def not_connected_handler(request: Request, exc: NotConnectedError) -> JSONResponse:
    logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"error": str(exc)})


@app.exception_handler(SubscriptionError)
async def subscription_error_handler(request: Request, exc: SubscriptionError) -> JSONResponse:
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.on_event("startup")
async def startup_event() -> None:
    service = get_service()
    service.start()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    service = get_service()
    service.shutdown()


@app.get("/")
def root(service: RelayService = Depends(get_service)) -> Dict:
    return service.status().to_dict()


@app.get("/health")
def health(service: RelayService = Depends(get_service)) -> Dict:
    return {"status": "ok", "connected": service.is_connected}


@app.get("/subscriptions")
def list_subscriptions(service: RelayService = Depends(get_service)) -> Dict:
    body = service.subscriptions().to_dict()
    body["max_subscriptions"] = service.registry.max_subscriptions
    return body


@app.get("/mode")
def subscription_mode(service: RelayService = Depends(get_service)) -> Dict:
    snapshot = service.subscriptions()
    return {"mode": snapshot.mode.value, "active_symbols": list(snapshot.symbols)}


@app.post("/subscribe/{symbol}")
def subscribe(symbol: str, service: RelayService = Depends(get_service)) -> Dict:
    """Add one symbol to the live subscription set."""
    return service.subscribe(symbol).to_dict()


@app.post("/subscribe-bulk")
def subscribe_bulk(
    request: Optional[BulkSubscribeRequest] = None,
    service: RelayService = Depends(get_service),
) -> Dict:
    """Replace every subscription with the given tickers."""
    tickers = request.tickers if request is not None else None
    return service.subscribe_bulk(tickers).to_dict()


@app.post("/subscribe-all-news")
def subscribe_all_news(service: RelayService = Depends(get_service)) -> Dict:
    """Switch to the all-news wildcard."""
    return service.subscribe_all().to_dict()


@app.post("/unsubscribe/{symbol}")
def unsubscribe(symbol: str, service: RelayService = Depends(get_service)) -> Dict:
    return service.unsubscribe(symbol).to_dict()


@app.post("/unsubscribe-all")
def unsubscribe_all(service: RelayService = Depends(get_service)) -> Dict:
    return service.unsubscribe_all().to_dict()
