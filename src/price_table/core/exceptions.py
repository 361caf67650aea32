"""Custom exception hierarchy for price-table-server."""

from typing import Any


class PriceTableError(Exception):
    """Base exception for all price-table-server errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class TransientError(PriceTableError):
    """Marker for soft failures: network, availability, rate limits, timeouts.

    Policy: retried by execute_with_retry until the attempt limit is reached.
    """


class ConfigError(PriceTableError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value
    """


class FeedError(PriceTableError):
    """Upstream price feed failed for a single market.

    Policy: the market gets a placeholder tick. The batch continues.

    Context keys:
        market: str — e.g. "BTC/EUR"
        exchange: str — exchange id
    """

    retryable = False


class TransientFeedError(FeedError, TransientError):
    """Upstream unavailable, rate limited, or timed out. Worth retrying."""

    retryable = True


class TickerNotFoundError(FeedError):
    """Upstream does not know the requested market. Never retried."""


class RetryLimitReachedError(PriceTableError):
    """All attempts of a retried operation failed with soft failures.

    Context keys:
        label: str — human readable name of the operation
        attempts: int — number of attempts made
        reason: str | None — reason of the last failure
    """


class AcquisitionError(PriceTableError):
    """No usable batch could be obtained for a pair.

    Policy: fatal during cold start; logged and skipped during updates.

    Context keys:
        pair: str — fiat pair key
    """


class CacheError(PriceTableError):
    """State cache operation failed.

    Context keys:
        path: str — cache file path
    """


class CacheNotFoundError(CacheError):
    """State cache file does not exist."""


class CacheCorruptError(CacheError):
    """State cache file is unparseable or does not match the schema."""


class CacheWriteError(CacheError):
    """State cache could not be written after retries."""


class StateError(PriceTableError):
    """Invalid access to the in-memory state store."""


class PairNotFoundError(StateError):
    """Requested fiat pair is not part of the configured state.

    Context keys:
        pair: str
    """


class AssetNotFoundError(StateError):
    """Requested asset is not part of the pair snapshot.

    Context keys:
        pair: str
        asset: str
    """


class SchemaDriftError(PriceTableError):
    """Validity reports of different pairs expose different field sets."""


class StartupError(PriceTableError):
    """Cold start could not build a usable state. The process must exit."""
