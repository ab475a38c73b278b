"""Request-level operations: add, remove, list and stream tickers."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .config import WatchSettings
from .interface import AutomationDriver
from .multiplexer import Subscription, SubscriptionMultiplexer
from .registry import TickerRegistry
from .resource import AutomationResource
from .supervisor import WatcherSupervisor

logger = logging.getLogger(__name__)


class TickerWatchService:
    """Wires the registry, supervisor, shared session and multiplexer together.

    Registry mutations drive reconciliation; stream requests only subscribe.

    Lifecycle:
        service = TickerWatchService(create_automation_driver(settings), settings)
        await service.add_ticker("btcusdt")
        async with service.stream_prices(["BTCUSDT"]) as sub:
            async for update in sub:
                ...
        await service.close()
    """

    def __init__(
        self,
        driver: AutomationDriver,
        settings: WatchSettings | None = None,
    ) -> None:
        settings = settings or WatchSettings()
        self.registry = TickerRegistry()
        self.multiplexer = SubscriptionMultiplexer()
        self.resource = AutomationResource(driver)
        self.supervisor = WatcherSupervisor(
            self.resource,
            self.multiplexer.publish,
            poll_interval=settings.poll_interval,
            read_timeout=settings.read_timeout,
            restart_timeout=settings.restart_timeout,
            is_wanted=self.registry.__contains__,
        )

    async def add_ticker(self, symbol: str) -> list[str]:
        tickers = self.registry.add(symbol)
        logger.info("Added ticker %s", symbol.upper().strip())
        self.supervisor.reconcile(tickers)
        return tickers

    async def remove_ticker(self, symbol: str) -> list[str]:
        tickers = self.registry.remove(symbol)
        logger.info("Removed ticker %s", symbol.upper().strip())
        self.supervisor.reconcile(tickers)
        return tickers

    def list_tickers(self) -> list[str]:
        return self.registry.list()

    def stream_prices(self, tickers: Iterable[str]) -> Subscription:
        """Open an independent, never-ending stream of updates for `tickers`.

        The stream ends only when the caller closes the subscription.
        """
        return self.multiplexer.subscribe(tickers)

    async def close(self) -> None:
        """Stop all watchers (closing the shared session) and end all streams."""
        await self.supervisor.shutdown()
        self.multiplexer.close_all()
        logger.info("Ticker watch service closed")
