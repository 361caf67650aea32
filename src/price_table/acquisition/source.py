"""Ticker sources — the upstream interface layer.

Two implementations satisfy the ``TickerSource`` protocol:

- ``KrakenTickerSource`` talks to the Kraken public REST API over httpx,
  rate limited with ``aiolimiter``.
- ``MockTickerSource`` generates prices inside fixed ranges, with optional
  induced failures and latency, for development and tests.

Errors are classified at this boundary: ``TransientFeedError`` for
conditions worth retrying, ``TickerNotFoundError`` for unknown markets and
plain ``FeedError`` for everything else that should not be retried.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Protocol, runtime_checkable

import httpx
from aiolimiter import AsyncLimiter

from price_table.core.config import ExchangeConfig
from price_table.core.exceptions import FeedError, TickerNotFoundError, TransientFeedError
from price_table.core.models import ExchangeId, Market, Ticker

logger = logging.getLogger(__name__)

_TICKER_PATH = "/0/public/Ticker"
_TIME_PATH = "/0/public/Time"
_USER_AGENT = "price-table-server/0.1"

# Kraken names a few assets differently from the rest of the market
_KRAKEN_ALIASES: dict[str, str] = {
    "BTC": "XBT",
    "DOGE": "XDG",
}

_RETRYABLE_STATUS = {429, 500, 502, 503, 504, 520, 522}


def _now_ms() -> int:
    return int(time.time() * 1000)


@runtime_checkable
class TickerSource(Protocol):
    """Consumer-facing interface of an upstream price feed."""

    async def fetch_ticker(self, market: Market) -> Ticker:
        """Fetch the latest price for a market such as ``"BTC/EUR"``.

        Raises:
            TransientFeedError: Upstream unavailable or rate limited.
            TickerNotFoundError: Market unknown to the upstream.
            FeedError: Any other non-retryable upstream failure.
        """
        ...

    async def probe(self) -> bool:
        """Return True if the upstream answers at all."""
        ...

    async def close(self) -> None: ...


class KrakenTickerSource:
    """Kraken public ticker endpoint.

    Use via ``async with KrakenTickerSource(config) as source:`` or call
    ``close()`` explicitly.
    """

    def __init__(self, config: ExchangeConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._limiter = AsyncLimiter(max_rate=config.rate_limit, time_period=1.0)
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            headers={"User-Agent": _USER_AGENT},
            timeout=httpx.Timeout(config.request_timeout),
        )

    async def __aenter__(self) -> KrakenTickerSource:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def kraken_pair(market: Market) -> str:
        """Translate ``"BTC/EUR"`` into Kraken's ``"XBTEUR"``."""
        try:
            base, quote = market.upper().split("/")
        except ValueError:
            raise TickerNotFoundError(
                f"Malformed market symbol: {market!r}",
                context={"market": market, "exchange": ExchangeId.KRAKEN.value},
            ) from None
        base = _KRAKEN_ALIASES.get(base, base)
        quote = _KRAKEN_ALIASES.get(quote, quote)
        return f"{base}{quote}"

    async def fetch_ticker(self, market: Market) -> Ticker:
        pair = self.kraken_pair(market)
        body = await self._get_json(_TICKER_PATH, params={"pair": pair}, market=market)
        result = body.get("result") or {}
        try:
            entry = next(iter(result.values()))
            last = float(entry["c"][0])
        except (StopIteration, KeyError, IndexError, TypeError, ValueError) as e:
            raise FeedError(
                f"Malformed ticker response for {market}",
                context={"market": market, "exchange": ExchangeId.KRAKEN.value},
            ) from e
        return Ticker(symbol=market.upper(), timestamp=_now_ms(), last=last)

    async def probe(self) -> bool:
        try:
            await self._get_json(_TIME_PATH, params=None, market=None)
        except FeedError as e:
            logger.warning("Exchange probe failed: %s", e)
            return False
        return True

    async def _get_json(
        self,
        path: str,
        params: dict[str, str] | None,
        market: Market | None,
    ) -> dict[str, Any]:
        """Issue one rate-limited GET and classify every failure mode."""
        context = {"market": market, "exchange": ExchangeId.KRAKEN.value, "path": path}
        try:
            await self._limiter.acquire()
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise TransientFeedError(f"Request timed out: {path}", context=context) from e
        except httpx.TransportError as e:
            raise TransientFeedError(f"Network error on {path}: {e}", context=context) from e

        if response.status_code in _RETRYABLE_STATUS:
            raise TransientFeedError(
                f"HTTP {response.status_code} from {path}",
                context={**context, "status_code": response.status_code},
            )
        if response.status_code != 200:
            raise FeedError(
                f"HTTP {response.status_code} from {path}",
                context={**context, "status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise FeedError(f"Unparseable JSON from {path}", context=context) from e
        if not isinstance(body, dict):
            raise FeedError(f"Unexpected response shape from {path}", context=context)

        errors = body.get("error") or []
        if errors:
            self._raise_api_error(errors, context)
        return body

    @staticmethod
    def _raise_api_error(errors: list[str], context: dict[str, Any]) -> None:
        message = "; ".join(str(e) for e in errors)
        context = {**context, "errors": errors}
        if any(e.startswith("EQuery:Unknown asset pair") for e in errors):
            raise TickerNotFoundError(f"Unknown market: {message}", context=context)
        if any(e.startswith(("EAPI:Rate limit", "EService:")) for e in errors):
            raise TransientFeedError(f"Exchange unavailable: {message}", context=context)
        raise FeedError(f"Exchange error: {message}", context=context)


# EUR price ranges per asset
_MOCK_RANGES: dict[str, tuple[float, float]] = {
    "BTC": (2891.47, 3037.63),
    "ETH": (87.74, 97.44),
    "ZEC": (35.59, 43.71),
    "LTC": (27.47, 28.93),
    "XMR": (36.82, 39.18),
    "DASH": (51.74, 58.23),
    "EOS": (1.67, 2.19),
    "ETC": (2.97, 3.42),
    "XLM": (0.06472, 0.07126),
    "XRP": (0.2597, 0.2669),
}

# Fiat conversion applied to the EUR ranges
_MOCK_FIAT: dict[str, float] = {
    "EUR": 1.0,
    "USD": 1.14,
}


class MockTickerSource:
    """In-process ticker source with random prices inside fixed ranges."""

    def __init__(
        self,
        failure_rate: float = 0.0,
        delay: float = 0.0,
        seed: int | None = None,
    ) -> None:
        self._failure_rate = failure_rate
        self._delay = delay
        self._random = random.Random(seed)

    @classmethod
    def from_config(cls, config: ExchangeConfig) -> MockTickerSource:
        return cls(failure_rate=config.mock_failure_rate, delay=config.mock_delay)

    async def fetch_ticker(self, market: Market) -> Ticker:
        if self._delay:
            await asyncio.sleep(self._delay)

        base, _, quote = market.upper().partition("/")
        if base not in _MOCK_RANGES or quote not in _MOCK_FIAT:
            raise TickerNotFoundError(
                f"TickerNotFound: {market}",
                context={"market": market, "exchange": ExchangeId.MOCK.value},
            )
        if self._failure_rate and self._random.random() < self._failure_rate:
            raise TransientFeedError(
                f"Mock-induced failure for {market}",
                context={"market": market, "exchange": ExchangeId.MOCK.value},
            )

        low, high = _MOCK_RANGES[base]
        factor = _MOCK_FIAT[quote]
        last = round(self._random.uniform(low, high) * factor, 5)
        return Ticker(symbol=f"{base}/{quote}", timestamp=_now_ms(), last=last)

    async def probe(self) -> bool:
        return True

    async def close(self) -> None:
        return None


def create_source(config: ExchangeConfig) -> TickerSource:
    """Instantiate the ticker source named by ``config.id``."""
    if config.id == ExchangeId.MOCK:
        logger.info("Using mock ticker source")
        return MockTickerSource.from_config(config)
    logger.info("Using Kraken ticker source at %s", config.base_url)
    return KrakenTickerSource(config)
