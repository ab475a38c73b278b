"""Runtime settings for the ticker watch subsystem, read from the environment."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_URL_TEMPLATE = "https://www.tradingview.com/symbols/{ticker}/?exchange=BINANCE"
DEFAULT_PRICE_SELECTOR = "span.js-symbol-last"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class WatchSettings:
    """Tunables for drivers, watchers and the supervisor.

    All times are in seconds.
    """

    driver: str = "simulator"
    headless: bool = True
    poll_interval: float = 2.0
    read_timeout: float = 15.0
    navigation_timeout: float = 15.0
    validate_timeout: float = 5.0
    restart_timeout: float = 30.0
    url_template: str = DEFAULT_URL_TEMPLATE
    price_selector: str = DEFAULT_PRICE_SELECTOR

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> WatchSettings:
        """Build settings from TICKERWATCH_* variables.

        Unset or blank variables keep the default. Unparseable numbers and
        booleans are logged and also keep the default.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def _str(name: str, default: str) -> str:
            value = env.get(name, "").strip()
            return value or default

        def _float(name: str, default: float) -> float:
            raw = env.get(name, "").strip()
            if not raw:
                return default
            try:
                value = float(raw)
            except ValueError:
                logger.warning("Ignoring %s=%r: not a number", name, raw)
                return default
            if value <= 0:
                logger.warning("Ignoring %s=%r: must be positive", name, raw)
                return default
            return value

        def _bool(name: str, default: bool) -> bool:
            raw = env.get(name, "").strip().lower()
            if not raw:
                return default
            if raw in _TRUE_VALUES:
                return True
            if raw in _FALSE_VALUES:
                return False
            logger.warning("Ignoring %s=%r: not a boolean", name, raw)
            return default

        return cls(
            driver=_str("TICKERWATCH_DRIVER", defaults.driver).lower(),
            headless=_bool("TICKERWATCH_HEADLESS", defaults.headless),
            poll_interval=_float("TICKERWATCH_POLL_INTERVAL", defaults.poll_interval),
            read_timeout=_float("TICKERWATCH_READ_TIMEOUT", defaults.read_timeout),
            navigation_timeout=_float(
                "TICKERWATCH_NAVIGATION_TIMEOUT", defaults.navigation_timeout
            ),
            validate_timeout=_float("TICKERWATCH_VALIDATE_TIMEOUT", defaults.validate_timeout),
            restart_timeout=_float("TICKERWATCH_RESTART_TIMEOUT", defaults.restart_timeout),
            url_template=_str("TICKERWATCH_URL_TEMPLATE", defaults.url_template),
            price_selector=_str("TICKERWATCH_PRICE_SELECTOR", defaults.price_selector),
        )
