"""price_table.core — Foundation types, config, and exceptions."""

from price_table.core.config import (
    APIConfig,
    CacheConfig,
    ExchangeConfig,
    LoggingConfig,
    MarketsConfig,
    PriceTableConfig,
    RetryConfig,
    SchedulerConfig,
    load_config,
)
from price_table.core.exceptions import (
    AcquisitionError,
    AssetNotFoundError,
    CacheCorruptError,
    CacheError,
    CacheNotFoundError,
    CacheWriteError,
    ConfigError,
    FeedError,
    PairNotFoundError,
    PriceTableError,
    RetryLimitReachedError,
    SchemaDriftError,
    StartupError,
    StateError,
    TickerNotFoundError,
    TransientError,
    TransientFeedError,
)
from price_table.core.models import (
    AgeLimit,
    Asset,
    AssetTick,
    ExchangeId,
    FeedState,
    Generation,
    Market,
    Pair,
    Signature,
    Snapshot,
    StateDocument,
    Ticker,
    Trend,
    ValidityReport,
    market_symbol,
)

__all__ = [
    # Type aliases
    "Pair",
    "Asset",
    "Market",
    # Enums
    "FeedState",
    "Generation",
    "ExchangeId",
    "Trend",
    # Models
    "Ticker",
    "AssetTick",
    "Signature",
    "Snapshot",
    "StateDocument",
    "ValidityReport",
    "AgeLimit",
    "market_symbol",
    # Config
    "PriceTableConfig",
    "MarketsConfig",
    "ExchangeConfig",
    "RetryConfig",
    "CacheConfig",
    "SchedulerConfig",
    "APIConfig",
    "LoggingConfig",
    "load_config",
    # Exceptions
    "PriceTableError",
    "TransientError",
    "ConfigError",
    "FeedError",
    "TransientFeedError",
    "TickerNotFoundError",
    "RetryLimitReachedError",
    "AcquisitionError",
    "CacheError",
    "CacheNotFoundError",
    "CacheCorruptError",
    "CacheWriteError",
    "StateError",
    "PairNotFoundError",
    "AssetNotFoundError",
    "SchemaDriftError",
    "StartupError",
]
