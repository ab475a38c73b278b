"""Maps requested tickers to live Watchers with race-free restarts."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable, Iterable

from .errors import InvalidSymbolError, WatcherRestartTimeout
from .models import PriceUpdate, WatcherState
from .resource import AutomationResource
from .watcher import Watcher

logger = logging.getLogger(__name__)


class WatcherSupervisor:
    """Creates, locates and stops Watchers.

    Invariant: for each ticker at most one Watcher that is not ABSENT exists
    at any moment. A restart (remove followed by add) waits for the STOPPING
    Watcher to reach ABSENT before a new one may start, so two pages for the
    same ticker never overlap.

    Check-then-act in ensure_watcher() runs under a per-ticker asyncio.Lock.
    mark_for_stop() only flips state and never takes the lock, so a removal
    is visible immediately even while a start is in progress.
    """

    def __init__(
        self,
        resource: AutomationResource,
        publish: Callable[[PriceUpdate], object],
        poll_interval: float = 2.0,
        read_timeout: float = 15.0,
        restart_timeout: float = 30.0,
        is_wanted: Callable[[str], bool] | None = None,
    ) -> None:
        self._resource = resource
        self._publish = publish
        self._interval = poll_interval
        self._read_timeout = read_timeout
        self._restart_timeout = restart_timeout
        self._is_wanted = is_wanted
        self._watchers: dict[str, Watcher] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._pending: set[asyncio.Task] = set()

    # --- Public API ---

    async def ensure_watcher(self, ticker: str) -> bool:
        """Make sure `ticker` has a RUNNING Watcher.

        Returns True if one is running (or starting) afterwards, False if the
        ticker was left unwatched: invalid symbol, page failure, no longer
        wanted, or removed again while its page was opening.

        Raises WatcherRestartTimeout if a previous Watcher for the ticker does
        not finish stopping within the restart timeout.
        """
        async with self._locks[ticker]:
            current = self._watchers.get(ticker)

            if current is not None and current.state is WatcherState.STOPPING:
                logger.info("Waiting for %s to finish stopping...", ticker)
                try:
                    await current.wait_finished(self._restart_timeout)
                except asyncio.TimeoutError:
                    raise WatcherRestartTimeout(
                        f"Previous watcher for {ticker} still stopping after "
                        f"{self._restart_timeout:.1f}s",
                        ticker=ticker,
                    ) from None
                current = self._watchers.get(ticker)

            if current is not None and current.state in (
                WatcherState.STARTING,
                WatcherState.RUNNING,
            ):
                logger.debug("Already watching %s", ticker)
                return True

            if self._is_wanted is not None and not self._is_wanted(ticker):
                logger.info("Skipping %s, no longer requested", ticker)
                return False

            return await self._start(ticker)

    def mark_for_stop(self, ticker: str) -> bool:
        """Ask the ticker's Watcher to stop. Returns False if there is none.

        Resources are released later by the Watcher's own task.
        """
        watcher = self._watchers.get(ticker)
        if watcher is None:
            return False
        watcher.request_stop()
        logger.info("Marked %s for stop", ticker)
        return True

    def reconcile(self, wanted: Iterable[str]) -> None:
        """Bring Watchers in line with the requested set of tickers.

        Unwanted Watchers are marked for stop right away. Missing ones are
        started by background tasks; see wait_for_pending().
        """
        wanted = set(wanted)
        for ticker, watcher in list(self._watchers.items()):
            if ticker not in wanted and watcher.state is not WatcherState.STOPPING:
                self.mark_for_stop(ticker)
        for ticker in sorted(wanted):
            if self.get_state(ticker) in (WatcherState.STARTING, WatcherState.RUNNING):
                continue
            task = asyncio.create_task(self._ensure_logged(ticker), name=f"ensure-{ticker}")
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def wait_for_pending(self) -> None:
        """Wait until every reconciliation task scheduled so far has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def get_watcher(self, ticker: str) -> Watcher | None:
        return self._watchers.get(ticker)

    def get_state(self, ticker: str) -> WatcherState:
        watcher = self._watchers.get(ticker)
        return watcher.state if watcher is not None else WatcherState.ABSENT

    def watched_tickers(self) -> list[str]:
        """Tickers whose Watcher is RUNNING."""
        return sorted(
            ticker
            for ticker, watcher in self._watchers.items()
            if watcher.state is WatcherState.RUNNING
        )

    async def shutdown(self) -> None:
        """Stop every Watcher and wait for all of them to reach ABSENT."""
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*list(self._pending), return_exceptions=True)
        watchers = list(self._watchers.values())
        for watcher in watchers:
            watcher.request_stop()
        for watcher in watchers:
            try:
                await watcher.wait_finished(self._restart_timeout)
            except asyncio.TimeoutError:
                logger.error("Watcher for %s did not stop; cancelling", watcher.ticker)
                if watcher.task is not None:
                    watcher.task.cancel()
                    await asyncio.gather(watcher.task, return_exceptions=True)
                try:
                    await watcher.wait_finished(self._restart_timeout)
                except asyncio.TimeoutError:
                    logger.error("Watcher for %s did not clean up after cancel", watcher.ticker)
        logger.info("Supervisor stopped %d watcher(s)", len(watchers))

    # --- Internal ---

    async def _start(self, ticker: str) -> bool:
        watcher = Watcher(
            ticker,
            self._resource,
            self._publish,
            poll_interval=self._interval,
            read_timeout=self._read_timeout,
            on_finished=self._forget,
        )
        self._watchers[ticker] = watcher

        try:
            page = await self._resource.open_page(ticker)
        except InvalidSymbolError as e:
            logger.warning("Skipping %s, invalid symbol: %s", ticker, e)
            await watcher.abandon()
            return False
        except Exception:
            logger.exception("Could not open a page for %s", ticker)
            await watcher.abandon()
            return False
        except BaseException:
            await watcher.abandon()
            raise

        if watcher.stop_requested:
            logger.info("%s was removed while starting", ticker)
            await watcher.abandon(page)
            return False

        watcher.start(page)
        return True

    async def _ensure_logged(self, ticker: str) -> None:
        try:
            await self.ensure_watcher(ticker)
        except WatcherRestartTimeout as e:
            logger.warning("%s", e)
        except Exception:
            logger.exception("Failed to start watcher for %s", ticker)

    def _forget(self, watcher: Watcher) -> None:
        if self._watchers.get(watcher.ticker) is watcher:
            del self._watchers[watcher.ticker]
