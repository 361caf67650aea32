"""Query-side views of the state store: price change payloads and envelopes."""

from __future__ import annotations

import itertools
from datetime import UTC, datetime

from pydantic import BaseModel

from price_table.core.exceptions import AssetNotFoundError
from price_table.core.models import (
    Asset,
    AssetTick,
    FeedState,
    Generation,
    Pair,
    Snapshot,
    Trend,
)
from price_table.runtime.telemetry import Telemetry
from price_table.state.store import StateStore

SCHEMA_VERSION = "1"


# --- Payload Models ---


class AssetPrices(BaseModel):
    name: Asset
    symbol: str | None
    timestamp: int | None
    success: bool
    current_price: float | None
    previous_price: float | None
    change_price: float | None
    change_percent: float | None
    trend: Trend | None


class PairPayload(BaseModel):
    pair: Pair
    assets: dict[Asset, AssetPrices]


class SingleAssetPayload(BaseModel):
    pair: Pair
    asset: AssetPrices


class ServerInfo(BaseModel):
    name: str
    version: str
    schema_version: str = SCHEMA_VERSION


class Records(BaseModel):
    request_id: int
    request_timestamp: tuple[str, int]
    client_input: str | None = None


class Diagnostics(BaseModel):
    feed_state: FeedState
    is_data_feed_active: bool


class Feedback(BaseModel):
    records: Records
    diagnostics: Diagnostics


class QueryResponse(BaseModel):
    info: ServerInfo
    payload: PairPayload | SingleAssetPayload
    feedback: Feedback


# --- Builders ---


def trend_of(current: float | None, previous: float | None) -> Trend | None:
    if current is None or previous is None:
        return None
    if current > previous:
        return Trend.UP
    if current < previous:
        return Trend.DOWN
    return Trend.FLAT


def build_asset_prices(asset: Asset, current: AssetTick, previous: AssetTick | None) -> AssetPrices:
    """Derive change, percent change and trend between two ticks.

    Any derived value is None when one of the prices is missing; the
    percent change is also None when the previous price is zero.
    """
    now = current.last
    before = previous.last if previous is not None else None

    change = None
    percent = None
    if now is not None and before is not None:
        change = now - before
        if before != 0:
            percent = change / before * 100

    return AssetPrices(
        name=asset,
        symbol=current.symbol,
        timestamp=current.timestamp,
        success=current.success,
        current_price=now,
        previous_price=before,
        change_price=change,
        change_percent=percent,
        trend=trend_of(now, before),
    )


def build_pair_payload(pair: Pair, current: Snapshot, previous: Snapshot) -> PairPayload:
    return PairPayload(
        pair=pair,
        assets={
            asset: build_asset_prices(asset, tick, previous.assets.get(asset))
            for asset, tick in current.assets.items()
        },
    )


class RequestRecords:
    """Monotonic request ids with wall-clock stamps."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)

    def next(self, client_input: str | None = None) -> Records:
        now = datetime.now(UTC)
        return Records(
            request_id=next(self._ids),
            request_timestamp=(now.isoformat(), int(now.timestamp() * 1000)),
            client_input=client_input,
        )


class AssetQueries:
    """Read-only query handlers for the REST surface.

    Queries always answer from the best snapshot available, stale or not;
    the feedback diagnostics tell the caller how healthy the feed is.
    """

    def __init__(
        self,
        store: StateStore,
        telemetry: Telemetry,
        info: ServerInfo,
        records: RequestRecords | None = None,
    ) -> None:
        self._store = store
        self._telemetry = telemetry
        self._info = info
        self._records = records or RequestRecords()

    def _feedback(self) -> Feedback:
        return Feedback(
            records=self._records.next(),
            diagnostics=Diagnostics(
                feed_state=self._telemetry.feed_state,
                is_data_feed_active=self._telemetry.is_data_feed_active,
            ),
        )

    def _pair_payload(self, pair: Pair) -> PairPayload:
        current = self._store.snapshot(Generation.CURRENT, pair)
        previous = self._store.snapshot(Generation.PREVIOUS, pair)
        return build_pair_payload(pair, current, previous)

    def get_all_assets(self, pair: Pair) -> QueryResponse:
        """Raises PairNotFoundError for an unknown pair."""
        payload = self._pair_payload(pair.lower())
        return QueryResponse(info=self._info, payload=payload, feedback=self._feedback())

    def get_single_asset(self, pair: Pair, asset: Asset) -> QueryResponse:
        """Raises PairNotFoundError or AssetNotFoundError."""
        pair_payload = self._pair_payload(pair.lower())
        key = asset.lower()
        if key not in pair_payload.assets:
            raise AssetNotFoundError(
                f"Invalid request for asset symbol [{asset.upper()}]",
                context={"pair": pair, "asset": asset},
            )
        payload = SingleAssetPayload(pair=pair_payload.pair, asset=pair_payload.assets[key])
        return QueryResponse(info=self._info, payload=payload, feedback=self._feedback())
