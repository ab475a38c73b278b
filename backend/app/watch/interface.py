"""Abstract interface for browser automation collaborators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class AutomationDriver(ABC):
    """Contract for the component that actually drives a browser.

    Session and page handles are opaque to the rest of the subsystem. Only
    the AutomationResource creates and closes sessions, and only the Watcher
    that opened a page reads from it or closes it.

    Lifecycle:
        session = await driver.create_session()
        page = await driver.open_page(session, "BTCUSDT")   # may raise InvalidSymbolError
        text = await driver.read_text(page, driver.price_selector, timeout=15.0)
        await driver.close_page(page)
        await driver.close_session(session)
    """

    #: Location of the displayed price on a symbol page
    price_selector: str

    @abstractmethod
    async def create_session(self) -> Any:
        """Start one automation session (e.g. launch a browser).

        Raises AutomationSessionError if the session cannot be created.
        """

    @abstractmethod
    async def close_session(self, session: Any) -> None:
        """Close a session created by create_session()."""

    @abstractmethod
    async def open_page(self, session: Any, ticker: str) -> Any:
        """Open and validate a page for a ticker.

        Raises InvalidSymbolError (after closing the page) if the page does
        not present the price element within the validation timeout.
        """

    @abstractmethod
    async def read_text(self, page: Any, selector: str, timeout: float) -> str | None:
        """Return the text at `selector`, waiting at most `timeout` seconds.

        Raises on timeout or read failure. Callers treat that as transient.
        """

    @abstractmethod
    async def close_page(self, page: Any) -> None:
        """Close a page. Safe to call more than once."""
