"""price_table.acquisition — Ticker sources, retry policy, and the fetch pipeline."""

from price_table.acquisition.pipeline import AcquisitionPipeline
from price_table.acquisition.retry import Outcome, execute_with_retry
from price_table.acquisition.source import (
    KrakenTickerSource,
    MockTickerSource,
    TickerSource,
    create_source,
)

__all__ = [
    "AcquisitionPipeline",
    "KrakenTickerSource",
    "MockTickerSource",
    "Outcome",
    "TickerSource",
    "create_source",
    "execute_with_retry",
]
