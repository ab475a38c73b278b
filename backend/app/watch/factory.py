"""Factory for creating automation drivers."""

from __future__ import annotations

import logging

from .config import WatchSettings
from .interface import AutomationDriver

logger = logging.getLogger(__name__)


def create_automation_driver(settings: WatchSettings | None = None) -> AutomationDriver:
    """Create the automation driver selected by the settings.

    - TICKERWATCH_DRIVER=playwright → PlaywrightDriver (real Chromium pages)
    - Otherwise → SimulatedDriver (random walk, no browser needed)

    Settings default to WatchSettings.from_env().
    """
    settings = settings or WatchSettings.from_env()

    if settings.driver == "playwright":
        from .playwright_driver import PlaywrightDriver

        logger.info("Automation driver: Playwright (headless=%s)", settings.headless)
        return PlaywrightDriver(
            headless=settings.headless,
            url_template=settings.url_template,
            price_selector=settings.price_selector,
            navigation_timeout=settings.navigation_timeout,
            validate_timeout=settings.validate_timeout,
        )
    else:
        from .simulator import SimulatedDriver

        if settings.driver != "simulator":
            logger.warning("Unknown driver %r, falling back to the simulator", settings.driver)
        logger.info("Automation driver: simulator")
        return SimulatedDriver(step_seconds=settings.poll_interval)
