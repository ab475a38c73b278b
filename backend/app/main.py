"""FastAPI application wiring for the ticker watch backend."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .watch import (
    TickerWatchService,
    WatchSettings,
    create_automation_driver,
    create_ticker_router,
)

logger = logging.getLogger(__name__)


def create_app(service: TickerWatchService | None = None) -> FastAPI:
    """Build the app. A service is created from the environment if none is given.

    The service is closed on shutdown either way, which stops every watcher
    and closes the shared browser.
    """
    if service is None:
        settings = WatchSettings.from_env()
        service = TickerWatchService(create_automation_driver(settings), settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Ticker watch backend starting")
        yield
        await service.close()

    app = FastAPI(title="Ticker Watch", version="0.1.0", lifespan=lifespan)
    app.state.service = service
    app.include_router(create_ticker_router(service))
    return app


def main() -> None:
    import uvicorn

    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(),
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", "8080")),
    )


if __name__ == "__main__":
    main()
