"""Per-pair acquisition with graded success accounting."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from price_table.acquisition.retry import Outcome, execute_with_retry
from price_table.acquisition.source import TickerSource
from price_table.core.exceptions import AcquisitionError, FeedError, RetryLimitReachedError
from price_table.core.models import (
    Asset,
    AssetTick,
    FeedState,
    Pair,
    Signature,
    Snapshot,
    market_symbol,
)
from price_table.runtime.telemetry import Telemetry

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class AcquisitionPipeline:
    """Turns an unreliable ticker source into graded per-pair snapshots.

    One call of ``fetch_one`` queries every asset of a pair sequentially.
    A failing asset becomes a placeholder tick instead of aborting the
    batch; only exceptions outside the ``FeedError`` family abort it.
    """

    def __init__(
        self,
        source: TickerSource,
        telemetry: Telemetry,
        *,
        retry_delay: float = 0.0,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._source = source
        self._telemetry = telemetry
        self._retry_delay = retry_delay
        self._clock = clock

    async def fetch_one(
        self,
        pair: Pair,
        assets: list[Asset],
        pass_through: bool = False,
    ) -> Outcome[Snapshot]:
        """Fetch every asset of ``pair`` once.

        A partial batch is reported as a soft failure (or a terminal one
        when some asset failed non-retryably) unless ``pass_through`` is
        set, in which case it is returned as a success.
        """
        ticks: dict[Asset, AssetTick] = {}
        reasons: list[str] = []
        retryable = True

        for asset in assets:
            market = market_symbol(asset, pair)
            try:
                ticker = await self._source.fetch_ticker(market)
            except FeedError as e:
                logger.debug("Ticker %s failed: %s", market, e)
                reasons.append(f"{market}: {e}")
                retryable = retryable and e.retryable
                ticks[asset] = AssetTick(symbol=market, timestamp=self._clock())
                continue
            ticks[asset] = AssetTick.from_ticker(ticker)

        success = all(tick.success for tick in ticks.values())
        snapshot = Snapshot(
            assets=ticks,
            signature=Signature(timestamp=self._clock(), success=success),
        )
        _log_snapshot(pair, snapshot)

        state = FeedState.ONLINE if success else FeedState.DEGRADED
        self._telemetry.set_feed_state(state)
        if success:
            return Outcome.success(snapshot)

        failed = len(reasons)
        logger.warning(
            "Partial data for %s: %d of %d assets failed", pair, failed, len(assets)
        )
        if pass_through:
            return Outcome.success(snapshot)

        reason = f"{failed} of {len(assets)} assets failed ({state}): " + "; ".join(reasons)
        if retryable:
            return Outcome.soft_failure(reason)
        return Outcome.terminal(reason)

    async def fetch(
        self,
        pair: Pair,
        assets: list[Asset],
        *,
        retry_limit: int,
        allow_partial: bool = False,
    ) -> Snapshot:
        """Fetch ``pair`` with retries.

        Raises:
            AcquisitionError: No usable batch after the retry loop ended.
                Telemetry is switched to offline first.
        """
        label = f"Exchange data import [{pair.upper()}]"
        try:
            outcome = await execute_with_retry(
                retry_limit,
                lambda: self.fetch_one(pair, assets, pass_through=allow_partial),
                label=label,
                delay=self._retry_delay,
            )
        except RetryLimitReachedError as e:
            self._telemetry.set_feed_state(FeedState.OFFLINE)
            raise AcquisitionError(
                f"No usable data for {pair} after {retry_limit} attempts",
                context={"pair": pair, "reason": e.context.get("reason")},
            ) from e

        if not outcome.ok or outcome.value is None:
            self._telemetry.set_feed_state(FeedState.OFFLINE)
            raise AcquisitionError(
                f"No usable data for {pair}: {outcome.reason}",
                context={"pair": pair, "reason": outcome.reason},
            )
        return outcome.value


def _log_snapshot(pair: Pair, snapshot: Snapshot) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    lines = [f"{'asset':<6} {'symbol':<10} {'timestamp':>14} {'last':>14} success"]
    for asset, tick in snapshot.assets.items():
        lines.append(
            f"{asset:<6} {tick.symbol or '-':<10} {tick.timestamp or '-':>14} "
            f"{tick.last if tick.last is not None else '-':>14} {tick.success}"
        )
    logger.debug("Snapshot %s:\n%s", pair, "\n".join(lines))
