"""Tests for price_table.core.models."""

from price_table.core.models import (
    AssetTick,
    FeedState,
    Generation,
    Snapshot,
    StateDocument,
    Ticker,
    ValidityReport,
    market_symbol,
)


class TestMarketSymbol:
    def test_upper_and_slash(self):
        assert market_symbol("btc", "eur") == "BTC/EUR"


class TestAssetTick:
    def test_placeholder_defaults(self):
        tick = AssetTick()
        assert tick.symbol is None
        assert tick.timestamp is None
        assert tick.last is None
        assert tick.success is False

    def test_from_ticker(self):
        tick = AssetTick.from_ticker(Ticker(symbol="ETH/EUR", timestamp=1, last=90.5))
        assert tick == AssetTick(symbol="ETH/EUR", timestamp=1, last=90.5, success=True)


class TestSnapshot:
    def test_placeholder(self):
        snap = Snapshot.placeholder(["btc", "eth"])
        assert set(snap.assets) == {"btc", "eth"}
        assert snap.flags == [False, False]
        assert snap.signature.timestamp is None
        assert snap.signature.success is False

    def test_placeholder_ticks_are_distinct(self):
        snap = Snapshot.placeholder(["btc", "eth"])
        assert snap.assets["btc"] is not snap.assets["eth"]


class TestStateDocument:
    def test_json_round_trip_keeps_nulls(self):
        doc = StateDocument(
            current={"eur": Snapshot.placeholder(["btc"])},
            previous={"eur": Snapshot.placeholder(["btc"])},
        )
        restored = StateDocument.model_validate_json(doc.model_dump_json())
        assert restored == doc

    def test_generation_lookup(self):
        doc = StateDocument(current={"eur": Snapshot.placeholder(["btc"])}, previous={})
        assert doc.generation(Generation.CURRENT) is doc.current
        assert doc.generation(Generation.PREVIOUS) == {}


class TestValidityReport:
    def test_all_valid(self):
        assert ValidityReport(current=True, previous=True, up_to_date=True).all_valid
        assert not ValidityReport(current=True, previous=True).all_valid

    def test_defaults_false(self):
        report = ValidityReport()
        assert (report.current, report.previous, report.up_to_date) == (False, False, False)


class TestFeedState:
    def test_values(self):
        assert {s.value for s in FeedState} == {"online", "degraded", "offline"}
