"""Offline automation driver that simulates symbol pages with a random walk."""

from __future__ import annotations

import asyncio
import logging
import math
import re
from dataclasses import dataclass

import numpy as np

from .config import DEFAULT_PRICE_SELECTOR
from .errors import AutomationSessionError, InvalidSymbolError, PriceReadError
from .interface import AutomationDriver
from .seed_prices import (
    DEFAULT_PRICE_RANGE,
    DEFAULT_SIGMA,
    SEED_PRICES,
    TICKER_SIGMA,
    UNCHANGED_PROBABILITY,
    VALID_SYMBOL_PATTERN,
)

logger = logging.getLogger(__name__)

_VALID_SYMBOL_RE = re.compile(VALID_SYMBOL_PATTERN)


@dataclass
class SimulatedSession:
    """Stand-in for a browser instance."""

    session_id: int
    closed: bool = False


@dataclass
class SimulatedPage:
    """Stand-in for a symbol page. Each read advances its price."""

    ticker: str
    price: float
    sigma: float
    closed: bool = False


class SimulatedDriver(AutomationDriver):
    """AutomationDriver that needs no browser.

    Every read moves the page's price by one step of Geometric Brownian
    Motion with zero drift:

        S(t+dt) = S(t) * exp(-sigma^2/2 * dt + sigma * sqrt(dt) * Z)

    where dt is one poll interval as a fraction of a (24/7) year. With
    probability UNCHANGED_PROBABILITY the page shows the previous price,
    which exercises the watcher's duplicate suppression.
    """

    SECONDS_PER_YEAR = 365 * 24 * 3600  # Crypto pairs trade around the clock

    def __init__(
        self,
        step_seconds: float = 2.0,
        unchanged_probability: float = UNCHANGED_PROBABILITY,
        latency: float = 0.0,
        seed: int | None = None,
    ) -> None:
        self.price_selector = DEFAULT_PRICE_SELECTOR
        self._dt = step_seconds / self.SECONDS_PER_YEAR
        self._unchanged_prob = unchanged_probability
        self._latency = latency
        self._rng = np.random.default_rng(seed)
        self._session_counter = 0

    async def create_session(self) -> SimulatedSession:
        self._session_counter += 1
        logger.info("Simulated session %d started", self._session_counter)
        return SimulatedSession(session_id=self._session_counter)

    async def close_session(self, session: SimulatedSession) -> None:
        session.closed = True
        logger.info("Simulated session %d closed", session.session_id)

    async def open_page(self, session: SimulatedSession, ticker: str) -> SimulatedPage:
        await self._pause()
        if session.closed:
            raise AutomationSessionError("Session is closed", ticker=ticker)
        if not _VALID_SYMBOL_RE.match(ticker):
            raise InvalidSymbolError(f"No simulated page for {ticker}", ticker=ticker)
        low, high = DEFAULT_PRICE_RANGE
        price = SEED_PRICES.get(ticker)
        if price is None:
            price = float(self._rng.uniform(low, high))
        return SimulatedPage(
            ticker=ticker,
            price=price,
            sigma=TICKER_SIGMA.get(ticker, DEFAULT_SIGMA),
        )

    async def read_text(self, page: SimulatedPage, selector: str, timeout: float) -> str | None:
        await self._pause()
        if page.closed:
            raise PriceReadError("Page is closed", ticker=page.ticker)
        if self._rng.random() >= self._unchanged_prob:
            z = self._rng.standard_normal()
            drift = -0.5 * page.sigma**2 * self._dt
            diffusion = page.sigma * math.sqrt(self._dt) * z
            page.price *= math.exp(drift + diffusion)
        return self._format(page.price)

    async def close_page(self, page: SimulatedPage) -> None:
        page.closed = True

    @staticmethod
    def _format(price: float) -> str:
        """Render the way the real page does, with thousands separators."""
        decimals = 2 if price >= 1 else 5
        return f"{price:,.{decimals}f}"

    async def _pause(self) -> None:
        if self._latency > 0:
            await asyncio.sleep(self._latency)
