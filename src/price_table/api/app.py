"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from price_table.acquisition.source import TickerSource, create_source
from price_table.api.broadcast import Broadcaster
from price_table.api.deps import AppState
from price_table.api.routes import router, ws_router
from price_table.api.schemas import ErrorResponse
from price_table.core.config import PriceTableConfig, load_config
from price_table.core.exceptions import (
    AssetNotFoundError,
    ConfigError,
    PairNotFoundError,
    PriceTableError,
)
from price_table.runtime.payload import AssetQueries, RequestRecords, ServerInfo
from price_table.runtime.service import PriceFeedService

logger = logging.getLogger(__name__)

SERVER_NAME = "price-table-server"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cold start before serving, scheduler while serving, cleanup after."""
    import price_table

    config = app.state._pending_config or load_config()
    source = app.state._pending_source or create_source(config.exchange)
    service = PriceFeedService(config, source)

    info = ServerInfo(name=SERVER_NAME, version=price_table.__version__)
    records = RequestRecords()
    broadcaster = Broadcaster(service.telemetry, info, records)
    service.set_notifier(broadcaster.notify)

    try:
        await service.cold_start()
        if config.scheduler.enabled:
            service.start()
        else:
            logger.info("Scheduler disabled, serving the cold start snapshot only")

        app.state.app_state = AppState(
            config=config,
            service=service,
            queries=AssetQueries(service.store, service.telemetry, info, records),
            broadcaster=broadcaster,
        )
        yield
    finally:
        await service.close()


def create_app(
    config: PriceTableConfig | None = None,
    source: TickerSource | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    import price_table

    app = FastAPI(
        title="Price Table API",
        description="Polled cryptocurrency price snapshots",
        version=price_table.__version__,
        lifespan=lifespan,
    )

    # Stash overrides so lifespan can retrieve them
    app.state._pending_config = config
    app.state._pending_source = source

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")
    app.include_router(ws_router)

    @app.exception_handler(PriceTableError)
    async def price_table_exception_handler(request: Request, exc: PriceTableError):
        status_map = {
            PairNotFoundError: 404,
            AssetNotFoundError: 404,
            ConfigError: 400,
        }
        status = status_map.get(type(exc), 500)
        return JSONResponse(
            status_code=status,
            content=ErrorResponse(error=type(exc).__name__, detail=str(exc)).model_dump(),
        )

    return app
