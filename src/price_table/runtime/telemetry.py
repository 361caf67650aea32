"""Process-wide feed health."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from price_table.core.models import FeedState

logger = logging.getLogger(__name__)


def aggregate_feed_state(flags: Iterable[bool]) -> FeedState:
    """Fold per-asset success flags into one feed state.

    All true is online, all false (or no flags at all) is offline, any mix
    is degraded.
    """
    values = list(flags)
    if values and all(values):
        return FeedState.ONLINE
    if not any(values):
        return FeedState.OFFLINE
    return FeedState.DEGRADED


class Telemetry:
    """Feed state plus a couple of startup diagnostics flags."""

    def __init__(self) -> None:
        self._feed_state = FeedState.OFFLINE
        self.is_data_container_ready = False
        self.are_services_running = False

    @property
    def feed_state(self) -> FeedState:
        return self._feed_state

    @property
    def is_data_feed_active(self) -> bool:
        return self._feed_state != FeedState.OFFLINE

    def set_feed_state(self, state: FeedState) -> None:
        if state != self._feed_state:
            logger.info("Data feed state: %s -> %s", self._feed_state, state)
        self._feed_state = state

    def update_from_flags(self, flags: Iterable[bool]) -> FeedState:
        state = aggregate_feed_state(flags)
        self.set_feed_state(state)
        return state

    def as_dict(self) -> dict[str, object]:
        return {
            "feed_state": self._feed_state.value,
            "is_data_feed_active": self.is_data_feed_active,
            "is_data_container_ready": self.is_data_container_ready,
            "are_services_running": self.are_services_running,
        }
