"""Thread-safe in-memory registry of requested ticker symbols."""

from __future__ import annotations

from threading import Lock

from .models import normalize_ticker


class TickerRegistry:
    """Authoritative set of currently requested tickers.

    Writers: the add/remove request operations.
    Readers: list requests and the WatcherSupervisor during reconciliation.
    Every method returns a sorted snapshot taken under the lock, so readers
    never see a half-applied mutation.
    """

    def __init__(self) -> None:
        self._tickers: set[str] = set()
        self._lock = Lock()

    def add(self, symbol: str) -> list[str]:
        """Normalize and insert a ticker. Idempotent. Returns the sorted set."""
        ticker = normalize_ticker(symbol)
        with self._lock:
            self._tickers.add(ticker)
            return sorted(self._tickers)

    def remove(self, symbol: str) -> list[str]:
        """Normalize and delete a ticker. Unknown tickers are a no-op."""
        ticker = normalize_ticker(symbol)
        with self._lock:
            self._tickers.discard(ticker)
            return sorted(self._tickers)

    def list(self) -> list[str]:
        """Sorted snapshot of the current tickers."""
        with self._lock:
            return sorted(self._tickers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tickers)

    def __contains__(self, ticker: str) -> bool:
        with self._lock:
            return ticker in self._tickers
