"""Dependency injection for FastAPI routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from price_table.api.broadcast import Broadcaster
from price_table.core.config import PriceTableConfig
from price_table.runtime.payload import AssetQueries
from price_table.runtime.service import PriceFeedService


@dataclass
class AppState:
    """Shared application state, attached to app.state during lifespan."""

    config: PriceTableConfig
    service: PriceFeedService
    queries: AssetQueries
    broadcaster: Broadcaster


def get_app_state(request: Request) -> AppState:
    """Dependency: retrieve AppState from the request."""
    return request.app.state.app_state


def get_queries(request: Request) -> AssetQueries:
    """Dependency: retrieve the asset query handlers."""
    return request.app.state.app_state.queries
