"""WebSocket fan-out of update signals."""

from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

from price_table.api.schemas import Transmission, TransmissionMessage
from price_table.core.models import FeedState
from price_table.runtime.payload import Diagnostics, Feedback, RequestRecords, ServerInfo
from price_table.runtime.telemetry import Telemetry

logger = logging.getLogger(__name__)

ON_CONNECTION = TransmissionMessage(event="onConnection", description="STREAM_INITIALIZED")
ON_MESSAGE = TransmissionMessage(event="onMessage", description="RECEIVED_REQUEST_FROM_CLIENT")
ON_UPDATE = TransmissionMessage(event="onUpdate", description="DATA_FEED_SIGNAL_BROADCASTED")


class Broadcaster:
    """Tracks connected subscribers and pushes transmissions to them.

    Delivery is best effort: a subscriber whose send fails is dropped.
    """

    def __init__(
        self,
        telemetry: Telemetry,
        info: ServerInfo,
        records: RequestRecords | None = None,
    ) -> None:
        self._telemetry = telemetry
        self._info = info
        self._records = records or RequestRecords()
        self._clients: set[WebSocket] = set()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def transmission(
        self,
        message: TransmissionMessage,
        *,
        signal: bool,
        feed_state: FeedState | None = None,
        client_input: str | None = None,
    ) -> Transmission:
        state = feed_state if feed_state is not None else self._telemetry.feed_state
        return Transmission(
            info=self._info,
            message=message,
            signal=signal,
            is_first_transmission=message.event == ON_CONNECTION.event,
            has_client_input=bool(client_input),
            feedback=Feedback(
                records=self._records.next(client_input),
                diagnostics=Diagnostics(
                    feed_state=state,
                    is_data_feed_active=state != FeedState.OFFLINE,
                ),
            ),
        )

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._clients.add(websocket)
        logger.info("Subscriber connected (%d total)", len(self._clients))
        await self._send(websocket, self.transmission(ON_CONNECTION, signal=True))

    def disconnect(self, websocket: WebSocket) -> None:
        self._clients.discard(websocket)
        logger.info("Subscriber disconnected (%d total)", len(self._clients))

    async def on_message(self, websocket: WebSocket, text: str) -> None:
        """Acknowledge a client message to that client only."""
        logger.debug("Client message: %r", text)
        await self._send(
            websocket, self.transmission(ON_MESSAGE, signal=False, client_input=text)
        )

    async def notify(self, signal: bool, feed_state: FeedState) -> None:
        """Push an update signal to every subscriber."""
        if not self._clients:
            return
        transmission = self.transmission(ON_UPDATE, signal=signal, feed_state=feed_state)
        await asyncio.gather(*(self._send(ws, transmission) for ws in list(self._clients)))
        logger.debug("Update signal %s sent to %d subscribers", signal, len(self._clients))

    async def _send(self, websocket: WebSocket, transmission: Transmission) -> None:
        try:
            await websocket.send_json(transmission.model_dump(mode="json"))
        except Exception as e:
            logger.warning("Dropping subscriber after failed send: %s", e)
            self._clients.discard(websocket)
