"""HTTP endpoints for ticker management and SSE price streaming."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from .errors import InvalidTickerError, SubscriptionClosed
from .multiplexer import Subscription
from .service import TickerWatchService

logger = logging.getLogger(__name__)


class TickerRequest(BaseModel):
    ticker: str


class TickerListResponse(BaseModel):
    tickers: list[str]


def create_ticker_router(
    service: TickerWatchService,
    keepalive_interval: float = 15.0,
) -> APIRouter:
    """Create the ticker router bound to a service instance.

    This factory pattern lets us inject the service without globals.
    """
    router = APIRouter(prefix="/api", tags=["tickers"])

    @router.get("/tickers", response_model=TickerListResponse)
    async def list_tickers() -> TickerListResponse:
        return TickerListResponse(tickers=service.list_tickers())

    @router.post("/tickers", response_model=TickerListResponse)
    async def add_ticker(payload: TickerRequest) -> TickerListResponse:
        try:
            tickers = await service.add_ticker(payload.ticker)
        except InvalidTickerError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return TickerListResponse(tickers=tickers)

    @router.delete("/tickers/{ticker}", response_model=TickerListResponse)
    async def remove_ticker(ticker: str) -> TickerListResponse:
        try:
            tickers = await service.remove_ticker(ticker)
        except InvalidTickerError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return TickerListResponse(tickers=tickers)

    @router.get("/stream/prices")
    async def stream_prices(
        request: Request,
        tickers: list[str] = Query(default=[]),
    ) -> StreamingResponse:
        """SSE endpoint for live price updates.

        One event per detected price change for the requested tickers:

            data: {"ticker": "BTCUSDT", "price": 64012.5, "timestamp_ms": ..., ...}

        The stream never ends on its own; it closes when the client goes away.
        """
        try:
            subscription = service.stream_prices(tickers)
        except InvalidTickerError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return StreamingResponse(
            _generate_events(subscription, request, keepalive_interval),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    return router


async def _generate_events(
    subscription: Subscription,
    request: Request,
    keepalive_interval: float = 15.0,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE-formatted price events.

    Sends a comment line every `keepalive_interval` seconds while idle so
    proxies keep the connection open. Stops when the client disconnects, and
    always releases the subscription.
    """
    # Tell the client to retry after 1 second if the connection drops
    yield "retry: 1000\n\n"

    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s (%s)", client_ip, sorted(subscription.tickers))

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break
            try:
                update = await asyncio.wait_for(subscription.get(), keepalive_interval)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            except SubscriptionClosed:
                break
            yield f"data: {json.dumps(update.to_dict())}\n\n"
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
    finally:
        subscription.close()
