"""Exception hierarchy for the ticker watch subsystem.

None of these are fatal to the process. Invalid symbols and read failures
are contained per ticker; a restart timeout is transient and the caller may
simply retry.
"""

from __future__ import annotations


class TickerWatchError(Exception):
    """Base error for the ticker watch subsystem."""

    def __init__(self, message: str, *, ticker: str = "") -> None:
        self.ticker = ticker
        super().__init__(message)


class InvalidTickerError(TickerWatchError, ValueError):
    """The symbol is blank after normalization."""


class InvalidSymbolError(TickerWatchError):
    """The page for a symbol never presented its price element."""


class PriceReadError(TickerWatchError):
    """A single price read failed. The next poll retries."""


class WatcherRestartTimeout(TickerWatchError):
    """A previous Watcher did not finish stopping within the restart timeout."""


class AutomationSessionError(TickerWatchError):
    """The automation collaborator could not create a session."""


class SubscriptionClosed(TickerWatchError):
    """The subscription was closed while or before waiting for an update."""
