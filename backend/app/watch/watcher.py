"""Per-ticker polling state machine."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from .models import PriceUpdate, WatcherState, parse_price
from .resource import AutomationResource

logger = logging.getLogger(__name__)


class Watcher:
    """Polls one ticker's page and publishes price changes.

    States run STARTING -> RUNNING -> STOPPING -> ABSENT and never go back;
    a restart creates a new Watcher. The page handle is owned exclusively by
    this object and is always closed by the Watcher's own task, whichever
    way the loop ends. A task cancelled before its first step gets a
    follow-up cleanup task from its done callback.

    The supervisor requests a stop with request_stop(). The loop notices at
    its next iteration boundary (the inter-poll wait wakes up early), never
    in the middle of a read.
    """

    def __init__(
        self,
        ticker: str,
        resource: AutomationResource,
        publish: Callable[[PriceUpdate], Any],
        poll_interval: float = 2.0,
        read_timeout: float = 15.0,
        on_finished: Callable[[Watcher], None] | None = None,
    ) -> None:
        self.ticker = ticker
        self.state = WatcherState.STARTING
        self.page: Any = None
        self.last_price: float | None = None
        self._resource = resource
        self._publish = publish
        self._interval = poll_interval
        self._read_timeout = read_timeout
        self._on_finished = on_finished
        self._stop_requested = asyncio.Event()
        self._finished = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._late_cleanup: asyncio.Task | None = None

    def __repr__(self) -> str:
        return f"<Watcher {self.ticker} {self.state.value}>"

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    def request_stop(self) -> None:
        """Flip to STOPPING. Cleanup happens in the watcher's own task."""
        if self.state in (WatcherState.STARTING, WatcherState.RUNNING):
            self.state = WatcherState.STOPPING
            self._stop_requested.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    async def wait_finished(self, timeout: float | None = None) -> None:
        """Block until the watcher has reached ABSENT."""
        await asyncio.wait_for(self._finished.wait(), timeout)

    def start(self, page: Any) -> asyncio.Task:
        """Take ownership of a validated page and begin polling."""
        self.page = page
        self.state = WatcherState.RUNNING
        self._task = asyncio.create_task(self._run(), name=f"watcher-{self.ticker}")
        self._task.add_done_callback(self._on_task_done)
        logger.info("Started watching %s", self.ticker)
        return self._task

    async def abandon(self, page: Any = None) -> None:
        """Finish a watcher that never reached RUNNING, releasing `page` if given."""
        self.state = WatcherState.STOPPING
        self.page = page
        await self._cleanup()

    # --- Internal ---

    async def _run(self) -> None:
        try:
            while self.state is WatcherState.RUNNING:
                await self._poll_once()
                await self._wait_interval()
        except Exception:
            logger.exception("Watcher for %s failed", self.ticker)
        finally:
            self.state = WatcherState.STOPPING
            await self._cleanup()
            logger.info("Stopped watching %s", self.ticker)

    def _on_task_done(self, task: asyncio.Task) -> None:
        # A task cancelled before its first step never enters _run's finally
        if self._finished.is_set() or self._late_cleanup is not None:
            return
        logger.info("Watcher for %s cancelled before it ran; cleaning up", self.ticker)
        self.state = WatcherState.STOPPING
        self._late_cleanup = asyncio.create_task(
            self._cleanup(), name=f"watcher-{self.ticker}-cleanup"
        )

    async def _poll_once(self) -> None:
        """Read the page once and publish if the price changed."""
        try:
            text = await asyncio.wait_for(
                self._resource.read_price_text(self.page, self._read_timeout),
                self._read_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Price read for %s timed out after %.1fs", self.ticker, self._read_timeout)
            return
        except Exception as e:
            # Don't tear down on a single failed read. The next poll retries.
            logger.warning("Price read for %s failed: %s", self.ticker, e)
            return

        price = parse_price(text)
        if price is None:
            logger.debug("Discarding unparseable price for %s: %r", self.ticker, text)
            return
        if price == self.last_price:
            return

        update = PriceUpdate(
            ticker=self.ticker,
            price=price,
            previous_price=self.last_price,
            timestamp=time.time(),
        )
        self.last_price = price
        try:
            self._publish(update)
        except Exception:
            logger.exception("Publishing update for %s failed", self.ticker)

    async def _wait_interval(self) -> None:
        try:
            await asyncio.wait_for(self._stop_requested.wait(), self._interval)
        except asyncio.TimeoutError:
            pass

    async def _cleanup(self) -> None:
        try:
            if self.page is not None:
                page, self.page = self.page, None
                await self._resource.close_page(page)
        finally:
            self.last_price = None
            self.state = WatcherState.ABSENT
            if self._on_finished is not None:
                self._on_finished(self)
            self._finished.set()
