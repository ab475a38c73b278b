"""Data models for the ticker watch subsystem."""

from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass, field
from enum import Enum

from .errors import InvalidTickerError

# Whole price after separators are stripped: optional "$", a signed decimal
# (exponent allowed), then an optional alphabetic currency or percent suffix
_PRICE_RE = re.compile(
    r"\$?(?P<number>[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)[A-Za-z%]*"
)
_SPACE_RE = re.compile(r"\s+")


class WatcherState(str, Enum):
    """Lifecycle of a single Watcher instance. Linear, never reused."""

    ABSENT = "absent"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


def normalize_ticker(symbol: str) -> str:
    """Uppercase and trim a ticker symbol. Raises InvalidTickerError if blank."""
    ticker = (symbol or "").upper().strip()
    if not ticker:
        raise InvalidTickerError("Ticker symbol cannot be empty", ticker=symbol or "")
    return ticker


def parse_price(text: str | None) -> float | None:
    """Parse the displayed price text into a float.

    Handles thousands separators, surrounding whitespace, currency suffixes
    and the Unicode minus sign. Returns None unless the whole text is one
    number, or when that number is not finite.
    """
    if not text:
        return None
    cleaned = _SPACE_RE.sub("", text.replace(",", "").replace("\u2212", "-"))
    match = _PRICE_RE.fullmatch(cleaned)
    if match is None:
        return None
    try:
        price = float(match.group("number"))
    except ValueError:
        return None
    if not math.isfinite(price):
        return None
    return price


@dataclass(frozen=True, slots=True)
class PriceUpdate:
    """Immutable record of a detected price change for one ticker."""

    ticker: str
    price: float
    previous_price: float | None = None
    timestamp: float = field(default_factory=time.time)  # Unix seconds

    @property
    def timestamp_ms(self) -> int:
        return int(round(self.timestamp * 1000))

    @property
    def change(self) -> float:
        """Absolute change from the previously emitted price (0 for the first)."""
        if self.previous_price is None:
            return 0.0
        return round(self.price - self.previous_price, 8)

    @property
    def change_percent(self) -> float:
        if not self.previous_price:
            return 0.0
        return round((self.price - self.previous_price) / self.previous_price * 100, 4)

    @property
    def direction(self) -> str:
        """'up', 'down', or 'flat'."""
        if self.previous_price is None:
            return "flat"
        if self.price > self.previous_price:
            return "up"
        elif self.price < self.previous_price:
            return "down"
        return "flat"

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        return {
            "ticker": self.ticker,
            "price": self.price,
            "previous_price": self.previous_price,
            "timestamp_ms": self.timestamp_ms,
            "change": self.change,
            "change_percent": self.change_percent,
            "direction": self.direction,
        }
