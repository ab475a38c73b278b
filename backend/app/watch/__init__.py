"""Ticker watch subsystem.

Public API:
    PriceUpdate              - Immutable price-change record
    WatcherState             - Watcher lifecycle states
    TickerRegistry           - Thread-safe set of requested tickers
    AutomationDriver         - Abstract interface for browser automation
    AutomationResource       - Shared, reference-counted automation session
    Watcher                  - Per-ticker polling state machine
    WatcherSupervisor        - Starts and stops Watchers without overlap
    SubscriptionMultiplexer  - Broadcasts updates to per-stream subscriptions
    TickerWatchService       - Add / remove / list / stream operations
    WatchSettings            - Environment-driven configuration
    create_automation_driver - Factory that selects Playwright or the simulator
    create_ticker_router     - FastAPI router factory for tickers and SSE
"""

from .api import create_ticker_router
from .config import WatchSettings
from .errors import (
    InvalidSymbolError,
    InvalidTickerError,
    TickerWatchError,
    WatcherRestartTimeout,
)
from .factory import create_automation_driver
from .interface import AutomationDriver
from .models import PriceUpdate, WatcherState
from .multiplexer import Subscription, SubscriptionMultiplexer
from .registry import TickerRegistry
from .resource import AutomationResource
from .service import TickerWatchService
from .supervisor import WatcherSupervisor
from .watcher import Watcher

__all__ = [
    "AutomationDriver",
    "AutomationResource",
    "InvalidSymbolError",
    "InvalidTickerError",
    "PriceUpdate",
    "Subscription",
    "SubscriptionMultiplexer",
    "TickerRegistry",
    "TickerWatchError",
    "TickerWatchService",
    "Watcher",
    "WatcherRestartTimeout",
    "WatcherState",
    "WatcherSupervisor",
    "WatchSettings",
    "create_automation_driver",
    "create_ticker_router",
]
