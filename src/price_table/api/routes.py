"""FastAPI route definitions for the price table API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

import price_table
from price_table.api.deps import AppState, get_app_state, get_queries
from price_table.api.schemas import ErrorResponse, HealthResponse
from price_table.runtime.payload import AssetQueries, QueryResponse

logger = logging.getLogger(__name__)

router = APIRouter()
ws_router = APIRouter()


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(state: AppState = Depends(get_app_state)):
    """Feed health and service diagnostics."""
    telemetry = state.service.telemetry
    return HealthResponse(
        status="ok",
        version=price_table.__version__,
        exchange=state.config.exchange.id.value,
        pairs=state.config.markets.pairs,
        feed_state=telemetry.feed_state,
        is_data_feed_active=telemetry.is_data_feed_active,
        is_data_container_ready=telemetry.is_data_container_ready,
        are_services_running=telemetry.are_services_running,
    )


# -- Assets --


_NOT_FOUND = {404: {"model": ErrorResponse}}


@router.get("/assets/{pair}", response_model=QueryResponse, responses=_NOT_FOUND)
async def get_all_assets(pair: str, queries: AssetQueries = Depends(get_queries)):
    """Every asset of a fiat pair with its price change since the previous update."""
    return queries.get_all_assets(pair)


@router.get("/asset/{pair}/{asset}", response_model=QueryResponse, responses=_NOT_FOUND)
async def get_single_asset(
    pair: str,
    asset: str,
    queries: AssetQueries = Depends(get_queries),
):
    """A single asset of a fiat pair."""
    return queries.get_single_asset(pair, asset)


# -- Stream --


@ws_router.websocket("/ws")
async def stream(websocket: WebSocket):
    """Push channel: update signals plus acknowledgements of client messages."""
    broadcaster = websocket.app.state.app_state.broadcaster
    await broadcaster.connect(websocket)
    try:
        while True:
            text = await websocket.receive_text()
            await broadcaster.on_message(websocket, text)
    except WebSocketDisconnect:
        broadcaster.disconnect(websocket)
