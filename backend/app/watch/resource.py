"""Shared, reference-counted automation session."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .errors import AutomationSessionError
from .interface import AutomationDriver

logger = logging.getLogger(__name__)


class AutomationResource:
    """Owns the single automation session shared by every Watcher.

    The session exists iff at least one page is open or being opened. The
    first open_page() creates it; the close_page() that releases the last
    page closes it. Creation and teardown run under one asyncio.Lock, so a
    close can never race a new create.

    Opening the page itself happens outside the lock (navigation is slow),
    but the reference is taken before the lock is released so the session
    cannot be closed underneath a page that is still loading.

    A session whose driver reports AutomationSessionError on open is retired:
    new pages go to a fresh session, and the broken one is closed once the
    pages still holding it are released.
    """

    def __init__(self, driver: AutomationDriver) -> None:
        self._driver = driver
        self._session: Any = None  # Session new pages are opened in
        self._refs: dict[int, int] = {}  # id(session) -> pages holding it
        self._owners: dict[int, Any] = {}  # id(page) -> its session
        self._lock = asyncio.Lock()

    @property
    def is_live(self) -> bool:
        """True while any session is open."""
        return bool(self._refs)

    @property
    def page_count(self) -> int:
        """Number of pages currently open (or being opened)."""
        return sum(self._refs.values())

    async def open_page(self, ticker: str) -> Any:
        """Ensure the session is live and open a validated page for `ticker`.

        Raises whatever the driver raises (InvalidSymbolError for a page that
        fails validation). The reference taken for the page is returned on
        failure, which may close the session.
        """
        async with self._lock:
            if self._session is None:
                self._session = await self._driver.create_session()
            session = self._session
            self._refs[id(session)] = self._refs.get(id(session), 0) + 1
        try:
            page = await self._driver.open_page(session, ticker)
        except AutomationSessionError:
            await self._release(session, retire=True)
            raise
        except BaseException:
            await self._release(session)
            raise
        self._owners[id(page)] = session
        return page

    async def read_price_text(self, page: Any, timeout: float) -> str | None:
        return await self._driver.read_text(page, self._driver.price_selector, timeout)

    async def close_page(self, page: Any) -> None:
        """Close a page and drop its reference. Closes the session at zero."""
        session = self._owners.pop(id(page), None)
        try:
            await self._driver.close_page(page)
        except Exception:
            logger.exception("Closing page failed")
        finally:
            if session is not None:
                await self._release(session)

    async def _release(self, session: Any, retire: bool = False) -> None:
        async with self._lock:
            if retire and self._session is session:
                logger.warning("Automation session failed; the next page starts a new one")
                self._session = None
            key = id(session)
            self._refs[key] -= 1
            if self._refs[key] > 0:
                return
            del self._refs[key]
            if self._session is session:
                self._session = None
            try:
                await self._driver.close_session(session)
            except Exception:
                logger.exception("Closing automation session failed")
            else:
                logger.info("Automation session closed (no pages left)")
