"""Shared pytest fixtures for price-table-server."""

import time

import pytest

from price_table.core.config import (
    CacheConfig,
    ExchangeConfig,
    MarketsConfig,
    PriceTableConfig,
    RetryConfig,
    SchedulerConfig,
)
from price_table.core.models import (
    AssetTick,
    ExchangeId,
    Signature,
    Snapshot,
    StateDocument,
    Ticker,
)

PAIRS = ["eur", "usd"]
ASSETS = ["btc", "eth", "xrp"]


class ScriptedSource:
    """TickerSource double driven by per-market scripts.

    Each market maps to a list of responses consumed in order; the last
    response repeats. A response is a price (float) or an exception
    instance to raise.
    """

    def __init__(self, scripts=None, default=100.0, alive=True):
        self.scripts = {k.upper(): list(v) for k, v in (scripts or {}).items()}
        self.default = default
        self.alive = alive
        self.calls: list[str] = []
        self.closed = False

    async def fetch_ticker(self, market):
        market = market.upper()
        self.calls.append(market)
        script = self.scripts.get(market)
        if script:
            response = script.pop(0) if len(script) > 1 else script[0]
        else:
            response = self.default
        if isinstance(response, BaseException):
            raise response
        return Ticker(symbol=market, timestamp=int(time.time() * 1000), last=response)

    async def probe(self):
        return self.alive

    async def close(self):
        self.closed = True


@pytest.fixture
def scripted_source():
    """Factory for ScriptedSource instances."""
    return ScriptedSource


@pytest.fixture
def config(tmp_path) -> PriceTableConfig:
    return PriceTableConfig(
        markets=MarketsConfig(pairs=PAIRS, assets=ASSETS),
        exchange=ExchangeConfig(id=ExchangeId.MOCK),
        retry=RetryConfig(
            exchange_data_import=3,
            exchange_data_export=2,
            state_cache_import=2,
            delay_seconds=0,
        ),
        cache=CacheConfig(path=str(tmp_path / "data" / "statecache.json")),
        scheduler=SchedulerConfig(enabled=False),
    )


@pytest.fixture
def make_snapshot():
    """Factory for a Snapshot with every asset priced (or failed)."""

    def _make(pair="eur", prices=None, timestamp=None, success=None):
        timestamp = timestamp if timestamp is not None else int(time.time() * 1000)
        prices = prices if prices is not None else {a: 10.0 * (i + 1) for i, a in enumerate(ASSETS)}
        assets = {}
        for asset, price in prices.items():
            if price is None:
                assets[asset] = AssetTick(symbol=f"{asset.upper()}/{pair.upper()}", timestamp=timestamp)
            else:
                assets[asset] = AssetTick(
                    symbol=f"{asset.upper()}/{pair.upper()}",
                    timestamp=timestamp,
                    last=price,
                    success=True,
                )
        ok = all(t.success for t in assets.values()) if success is None else success
        return Snapshot(assets=assets, signature=Signature(timestamp=timestamp, success=ok))

    return _make


@pytest.fixture
def make_document(make_snapshot):
    """Factory for a StateDocument with both generations for every pair."""

    def _make(timestamp=None, current_success=True, previous_success=True, pairs=PAIRS):
        return StateDocument(
            current={p: make_snapshot(p, timestamp=timestamp, success=current_success) for p in pairs},
            previous={p: make_snapshot(p, timestamp=timestamp, success=previous_success) for p in pairs},
        )

    return _make
