"""Playwright-backed automation driver that reads prices from symbol pages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .config import DEFAULT_PRICE_SELECTOR, DEFAULT_URL_TEMPLATE
from .errors import AutomationSessionError, InvalidSymbolError
from .interface import AutomationDriver

logger = logging.getLogger(__name__)


@dataclass
class BrowserSession:
    """A running Playwright instance and the Chromium browser it launched."""

    playwright: Any
    browser: Any


class PlaywrightDriver(AutomationDriver):
    """AutomationDriver backed by Playwright's async Chromium API.

    One browser per session, one tab per ticker. A tab is only handed out
    once the price element has rendered; symbols whose page never shows it
    are rejected with InvalidSymbolError.
    """

    def __init__(
        self,
        headless: bool = True,
        url_template: str = DEFAULT_URL_TEMPLATE,
        price_selector: str = DEFAULT_PRICE_SELECTOR,
        navigation_timeout: float = 15.0,
        validate_timeout: float = 5.0,
    ) -> None:
        self._headless = headless
        self._url_template = url_template
        self.price_selector = price_selector
        self._navigation_timeout = navigation_timeout
        self._validate_timeout = validate_timeout

    async def create_session(self) -> BrowserSession:
        # Lazy import: playwright is only needed when real browsers are used,
        # so the simulator and the test suite do not require browser binaries.
        from playwright.async_api import async_playwright

        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(headless=self._headless)
        except Exception as e:
            await playwright.stop()
            raise AutomationSessionError(f"Could not launch Chromium: {e}") from e
        logger.info("Browser launched (headless=%s)", self._headless)
        return BrowserSession(playwright=playwright, browser=browser)

    async def close_session(self, session: BrowserSession) -> None:
        try:
            await session.browser.close()
        finally:
            await session.playwright.stop()
        logger.info("Browser closed")

    async def open_page(self, session: BrowserSession, ticker: str) -> Any:
        if not session.browser.is_connected():
            raise AutomationSessionError("Browser is disconnected", ticker=ticker)
        try:
            page = await session.browser.new_page()
        except Exception as e:
            raise AutomationSessionError(f"Could not open a tab: {e}", ticker=ticker) from e
        url = self.url_for(ticker)
        logger.info("Opening %s", url)
        try:
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self._navigation_timeout * 1000,
            )
            await page.locator(self.price_selector).first.wait_for(
                timeout=self._validate_timeout * 1000
            )
        except Exception as e:
            await self.close_page(page)
            raise InvalidSymbolError(
                f"Price element never appeared for {ticker}: {e}", ticker=ticker
            ) from e
        return page

    async def read_text(self, page: Any, selector: str, timeout: float) -> str | None:
        return await page.locator(selector).first.text_content(timeout=timeout * 1000)

    async def close_page(self, page: Any) -> None:
        if page.is_closed():
            return
        try:
            await page.close()
        except Exception as e:
            # The browser may already be gone; a closed page is the goal either way
            logger.debug("Ignoring error while closing page: %s", e)

    def url_for(self, ticker: str) -> str:
        return self._url_template.format(ticker=ticker)
