"""Fixtures for ticker watch tests.

ScriptedDriver is an in-memory AutomationDriver: each ticker's page shows
the texts queued with script(), one per read, and keeps showing the last
one afterwards (like a page that has not ticked). It records how many
pages per ticker are open at once and how many sessions are live.
"""

import asyncio
from collections import defaultdict, deque
from dataclasses import dataclass, field

import pytest
import pytest_asyncio

from app.watch.config import WatchSettings
from app.watch.errors import AutomationSessionError, InvalidSymbolError, PriceReadError
from app.watch.interface import AutomationDriver
from app.watch.service import TickerWatchService


@dataclass
class ScriptedSession:
    number: int
    closed: bool = False


@dataclass
class ScriptedPage:
    ticker: str
    session: ScriptedSession
    text: str | None = None
    closed: bool = False
    reads: int = 0


@dataclass
class ScriptedDriver(AutomationDriver):
    invalid: set[str] = field(default_factory=set)
    broken_sessions: set[int] = field(default_factory=set)
    open_delay: float = 0.0
    read_delay: float = 0.0
    price_selector: str = "span.price"

    def __post_init__(self) -> None:
        self.scripts: dict[str, deque] = defaultdict(deque)
        self.failing_reads: dict[str, int] = defaultdict(int)
        self.sessions_created = 0
        self.sessions_closed = 0
        self.open_pages: dict[str, int] = defaultdict(int)
        self.max_open_pages: dict[str, int] = defaultdict(int)
        self.pages_opened: dict[str, int] = defaultdict(int)

    def script(self, ticker: str, *texts: str) -> None:
        self.scripts[ticker].extend(texts)

    def fail_next_reads(self, ticker: str, count: int) -> None:
        self.failing_reads[ticker] += count

    @property
    def live_sessions(self) -> int:
        return self.sessions_created - self.sessions_closed

    async def create_session(self) -> ScriptedSession:
        self.sessions_created += 1
        return ScriptedSession(number=self.sessions_created)

    async def close_session(self, session: ScriptedSession) -> None:
        session.closed = True
        self.sessions_closed += 1

    async def open_page(self, session: ScriptedSession, ticker: str) -> ScriptedPage:
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if session.number in self.broken_sessions:
            raise AutomationSessionError("browser crashed", ticker=ticker)
        if ticker in self.invalid:
            raise InvalidSymbolError(f"no price element for {ticker}", ticker=ticker)
        self.pages_opened[ticker] += 1
        self.open_pages[ticker] += 1
        self.max_open_pages[ticker] = max(self.max_open_pages[ticker], self.open_pages[ticker])
        return ScriptedPage(ticker=ticker, session=session)

    async def read_text(self, page: ScriptedPage, selector: str, timeout: float) -> str | None:
        await asyncio.sleep(self.read_delay)
        if page.closed or page.session.closed:
            raise PriceReadError("page is closed", ticker=page.ticker)
        page.reads += 1
        if self.failing_reads[page.ticker] > 0:
            self.failing_reads[page.ticker] -= 1
            raise PriceReadError("read failed", ticker=page.ticker)
        queue = self.scripts[page.ticker]
        if queue:
            page.text = queue.popleft()
        if page.text is None:
            raise PriceReadError("no price rendered yet", ticker=page.ticker)
        return page.text

    async def close_page(self, page: ScriptedPage) -> None:
        if page.closed:
            return
        page.closed = True
        self.open_pages[page.ticker] -= 1


async def _wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll `predicate` until it is true, failing the test after `timeout`."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(interval)


async def _next_update(subscription, timeout: float = 2.0):
    return await asyncio.wait_for(subscription.get(), timeout)


@pytest.fixture
def wait_until():
    return _wait_until


@pytest.fixture
def next_update():
    return _next_update


@pytest.fixture
def settings() -> WatchSettings:
    """Fast polling so tests run in milliseconds."""
    return WatchSettings(poll_interval=0.01, read_timeout=0.5, restart_timeout=2.0)


@pytest.fixture
def driver() -> ScriptedDriver:
    return ScriptedDriver()


@pytest_asyncio.fixture
async def service(driver, settings):
    svc = TickerWatchService(driver, settings)
    yield svc
    await svc.close()
