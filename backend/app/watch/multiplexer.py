"""One-to-many bridge from watcher pushes to per-stream pulls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

from .errors import SubscriptionClosed
from .models import PriceUpdate, normalize_ticker

logger = logging.getLogger(__name__)


class Subscription:
    """One stream consumer's view of price updates for a set of tickers.

    Holds at most one pending update per ticker; a newer update for the same
    ticker replaces the pending one. A consumer therefore always gets the
    latest price, in per-ticker order, and never two equal prices in a row.

    Usage:
        async with multiplexer.subscribe(["BTCUSDT"]) as sub:
            async for update in sub:
                ...
    """

    def __init__(
        self,
        tickers: Iterable[str],
        on_close: Callable[[Subscription], None] | None = None,
    ) -> None:
        self.tickers: frozenset[str] = frozenset(tickers)
        self._pending: dict[str, PriceUpdate] = {}
        self._last_delivered: dict[str, float] = {}
        self._ready = asyncio.Event()
        self._closed = False
        self._on_close = on_close

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return len(self._pending)

    def offer(self, update: PriceUpdate) -> bool:
        """Buffer an update. Returns False if it is not wanted here."""
        if self._closed or update.ticker not in self.tickers:
            return False
        if self._last_delivered.get(update.ticker) == update.price:
            # Superseded an undelivered value and landed back where the
            # consumer already is
            self._pending.pop(update.ticker, None)
        else:
            self._pending[update.ticker] = update
        if self._pending:
            self._ready.set()
        return True

    async def get(self) -> PriceUpdate:
        """Wait for the next update. Raises SubscriptionClosed once closed."""
        while not self._pending:
            if self._closed:
                raise SubscriptionClosed("Subscription is closed")
            self._ready.clear()
            await self._ready.wait()
        ticker = next(iter(self._pending))
        update = self._pending.pop(ticker)
        self._last_delivered[ticker] = update.price
        return update

    def close(self) -> None:
        """Release the waiting slot. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        self._ready.set()
        if self._on_close is not None:
            self._on_close(self)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> PriceUpdate:
        try:
            return await self.get()
        except SubscriptionClosed:
            raise StopAsyncIteration from None

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class SubscriptionMultiplexer:
    """Broadcasts each published update to every open Subscription for its ticker."""

    def __init__(self) -> None:
        self._subscriptions: set[Subscription] = set()

    def subscribe(self, tickers: Iterable[str]) -> Subscription:
        """Register a new subscription immediately and return it.

        Registration happens here rather than on first iteration, so nothing
        published after this call can be missed.
        """
        wanted = sorted({normalize_ticker(t) for t in tickers})
        subscription = Subscription(wanted, on_close=self._discard)
        self._subscriptions.add(subscription)
        logger.info("Subscription opened for %s (%d active)", wanted, len(self._subscriptions))
        return subscription

    def publish(self, update: PriceUpdate) -> int:
        """Deliver an update to every interested subscription. Returns the count."""
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.offer(update):
                delivered += 1
        logger.debug("Published %s %.8g to %d subscription(s)", update.ticker, update.price, delivered)
        return delivered

    def close_all(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.close()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def _discard(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)
        logger.info("Subscription closed (%d active)", len(self._subscriptions))
