"""Pydantic data models — the system's type contracts."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Type Aliases ---

Pair = str
Asset = str
Market = str

# --- Enumerations ---


class FeedState(StrEnum):
    """Process-wide health of the upstream price feed."""

    ONLINE = "online"
    DEGRADED = "degraded"
    OFFLINE = "offline"


class Generation(StrEnum):
    """The two snapshot generations kept by the state store."""

    CURRENT = "current"
    PREVIOUS = "previous"


class ExchangeId(StrEnum):
    """Supported ticker sources."""

    KRAKEN = "kraken"
    MOCK = "mock"


class Trend(StrEnum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


def market_symbol(asset: Asset, pair: Pair) -> Market:
    """Build the exchange market symbol, e.g. ("btc", "eur") -> "BTC/EUR"."""
    return f"{asset.upper()}/{pair.upper()}"


# --- Upstream ---


class Ticker(BaseModel):
    """A single price observation returned by a ticker source."""

    model_config = ConfigDict(frozen=True)

    symbol: Market
    timestamp: int  # epoch milliseconds
    last: float


# --- Snapshot Models ---


class AssetTick(BaseModel):
    """Latest observation for one asset within a pair snapshot.

    A placeholder tick has every value null and ``success`` false.
    """

    symbol: Market | None = None
    timestamp: int | None = None
    last: float | None = None
    success: bool = False

    @classmethod
    def from_ticker(cls, ticker: Ticker) -> AssetTick:
        return cls(
            symbol=ticker.symbol,
            timestamp=ticker.timestamp,
            last=ticker.last,
            success=True,
        )


class Signature(BaseModel):
    """Batch-level stamp: when a snapshot was produced and if it is complete."""

    timestamp: int | None = None
    success: bool = False


class Snapshot(BaseModel):
    """All asset ticks of one fiat pair plus the batch signature."""

    assets: dict[Asset, AssetTick]
    signature: Signature = Field(default_factory=Signature)

    @classmethod
    def placeholder(cls, assets: list[Asset]) -> Snapshot:
        return cls(assets={a: AssetTick() for a in assets})

    @property
    def flags(self) -> list[bool]:
        return [tick.success for tick in self.assets.values()]


class StateDocument(BaseModel):
    """Two-generation state as exported, persisted, and imported."""

    current: dict[Pair, Snapshot]
    previous: dict[Pair, Snapshot]
    export_id: str | None = None
    exported_at: int | None = None

    def generation(self, generation: Generation) -> dict[Pair, Snapshot]:
        if generation == Generation.CURRENT:
            return self.current
        return self.previous


class ValidityReport(BaseModel):
    """Usability of a cached snapshot for one pair (or consolidated)."""

    model_config = ConfigDict(frozen=True)

    current: bool = False
    previous: bool = False
    up_to_date: bool = False

    @property
    def all_valid(self) -> bool:
        return self.current and self.previous and self.up_to_date


class AgeLimit(BaseModel):
    """Maximum age of the cached current snapshot, split into units."""

    model_config = ConfigDict(frozen=True)

    days: int = 0
    hours: int = 0
    minutes: int = 4
    seconds: int = 59

    @field_validator("days")
    @classmethod
    def days_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("days must be >= 0")
        return v

    @field_validator("hours")
    @classmethod
    def hours_in_range(cls, v: int) -> int:
        if not 0 <= v < 24:
            raise ValueError("hours must be between 0 and 23")
        return v

    @field_validator("minutes", "seconds")
    @classmethod
    def sub_hour_in_range(cls, v: int) -> int:
        if not 0 <= v < 60:
            raise ValueError("minutes and seconds must be between 0 and 59")
        return v
