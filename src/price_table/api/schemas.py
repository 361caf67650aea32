"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

from pydantic import BaseModel

from price_table.core.models import FeedState
from price_table.runtime.payload import Feedback, ServerInfo


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Health --


class HealthResponse(BaseModel):
    status: str
    version: str
    exchange: str
    pairs: list[str]
    feed_state: FeedState
    is_data_feed_active: bool
    is_data_container_ready: bool
    are_services_running: bool


# -- WebSocket --


class TransmissionMessage(BaseModel):
    event: str  # "onConnection" | "onMessage" | "onUpdate"
    description: str


class Transmission(BaseModel):
    """One message pushed to a WebSocket subscriber."""

    info: ServerInfo
    message: TransmissionMessage
    signal: bool
    is_first_transmission: bool = False
    has_client_input: bool = False
    feedback: Feedback
