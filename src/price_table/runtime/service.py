"""Cycle orchestration: cold start and periodic updates."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from price_table.acquisition.pipeline import AcquisitionPipeline
from price_table.acquisition.source import TickerSource
from price_table.core.config import PriceTableConfig
from price_table.core.exceptions import (
    AcquisitionError,
    CacheWriteError,
    StartupError,
    StateError,
)
from price_table.core.models import FeedState, StateDocument, ValidityReport
from price_table.runtime.scheduler import Scheduler
from price_table.runtime.telemetry import Telemetry
from price_table.state.cache import StateCache
from price_table.state.store import StateStore
from price_table.state.validator import consolidate, render_table, validate_all

logger = logging.getLogger(__name__)

Notifier = Callable[[bool, FeedState], Awaitable[None]]


class PriceFeedService:
    """Owns the state store, cache, pipeline, telemetry and scheduler.

    ``cold_start`` builds the initial state from the cache and/or the
    exchange. ``update_cycle`` is what the scheduler runs on every tick.
    """

    def __init__(
        self,
        config: PriceTableConfig,
        source: TickerSource,
        *,
        telemetry: Telemetry | None = None,
        store: StateStore | None = None,
        cache: StateCache | None = None,
        scheduler: Scheduler | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.config = config
        self.source = source
        self.telemetry = telemetry or Telemetry()
        self.store = store or StateStore(config.markets.pairs, config.markets.assets)
        self.cache = cache or StateCache(config.cache.path, retry_delay=config.retry.delay_seconds)
        self.pipeline = AcquisitionPipeline(
            source, self.telemetry, retry_delay=config.retry.delay_seconds
        )
        self.scheduler = scheduler or Scheduler("update")
        self._notifier = notifier
        self._loop_task: asyncio.Task | None = None

    def set_notifier(self, notifier: Notifier | None) -> None:
        self._notifier = notifier

    # --- Cold start ---

    async def cold_start(self) -> ValidityReport:
        """Build the initial state.

        Returns the consolidated cache validity that drove the decision.

        Raises:
            StartupError: A pair could not be fetched while the cache was
                not fully usable.
        """
        markets = self.config.markets
        document = await self.cache.load(self.config.retry.state_cache_import)
        validity = self._validate_cache(document)

        if document is not None and validity.all_valid:
            try:
                self.store.import_all(document)
            except StateError as e:
                logger.warning("Cached state does not match configuration: %s", e)
                validity = ValidityReport()
            else:
                logger.info("State restored from cache, no exchange request needed")
                self.telemetry.update_from_flags(self.store.flags())

        if not validity.all_valid:
            for pair in markets.pairs:
                try:
                    fresh = await self.pipeline.fetch(
                        pair,
                        markets.assets,
                        retry_limit=self.config.retry.exchange_data_import,
                        allow_partial=False,
                    )
                except AcquisitionError as e:
                    self.telemetry.set_feed_state(FeedState.OFFLINE)
                    raise StartupError(
                        f"Unable to import ticker data for {pair.upper()} "
                        f"from {self.config.exchange.id.upper()}",
                        context={"pair": pair, **e.context},
                    ) from e
                self.store.reconcile(pair, fresh, document, validity)
            self.telemetry.update_from_flags(self.store.flags())
            await self.export()

        await self.probe()
        self.telemetry.is_data_container_ready = True
        return validity

    def _validate_cache(self, document: StateDocument | None) -> ValidityReport:
        if document is None:
            return ValidityReport()
        reports = validate_all(
            document, self.config.markets.pairs, self.config.cache.age_limit
        )
        validity, rows = consolidate(reports)
        level = logging.INFO if validity.all_valid else logging.WARNING
        logger.log(level, "Cache validation results:\n%s", render_table(rows))
        return validity

    async def probe(self) -> bool:
        """Check upstream connectivity and set the feed state accordingly."""
        alive = await self.source.probe()
        self.telemetry.set_feed_state(FeedState.ONLINE if alive else FeedState.OFFLINE)
        if not alive:
            logger.warning("Data feed test failed, feed marked offline")
        return alive

    async def export(self) -> bool:
        """Persist the current state. Failures are logged, not raised."""
        try:
            await self.cache.save(self.store.export_all(), self.config.retry.exchange_data_export)
        except CacheWriteError as e:
            logger.error("State cache export failed: %s", e)
            return False
        return True

    # --- Periodic update ---

    async def update_cycle(self) -> bool:
        """Shuffle, fetch every pair with partial results allowed, merge, persist.

        Returns True if at least one pair was merged. A pair that yields no
        data is logged and skipped. Any other error switches the feed
        offline and propagates.
        """
        markets = self.config.markets
        flags: list[bool] = []
        merged = False
        try:
            self.store.shuffle()
            for pair in markets.pairs:
                try:
                    fresh = await self.pipeline.fetch(
                        pair,
                        markets.assets,
                        retry_limit=self.config.retry.exchange_data_import,
                        allow_partial=True,
                    )
                except AcquisitionError as e:
                    logger.error("Update skipped for %s: %s", pair, e)
                    flags.extend(False for _ in markets.assets)
                    continue
                self.store.merge(pair, fresh, force_granularity=True)
                flags.extend(fresh.flags)
                merged = True

            state = self.telemetry.update_from_flags(flags)
            await self.export()
        except Exception:
            self.telemetry.set_feed_state(FeedState.OFFLINE)
            raise

        logger.info("Update #%d finished: feed %s", self.scheduler.state.counter, state)
        if self._notifier is not None:
            await self._notifier(merged, state)
        return merged

    # --- Lifecycle ---

    def start(self) -> asyncio.Task:
        """Start the scheduler loop in the background."""
        settings = self.config.scheduler
        self._loop_task = asyncio.create_task(
            self.scheduler.run(settings.skip_minutes, settings.interval_seconds, self.update_cycle)
        )
        self.telemetry.are_services_running = True
        return self._loop_task

    async def stop(self) -> None:
        self.scheduler.stop()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
        await self.scheduler.drain()
        self.telemetry.are_services_running = False

    async def close(self) -> None:
        await self.stop()
        await self.source.close()
