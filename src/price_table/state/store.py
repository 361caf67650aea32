"""Two-generation in-memory snapshot store."""

from __future__ import annotations

import logging
import time
import uuid

from price_table.core.exceptions import PairNotFoundError, StateError
from price_table.core.models import (
    Asset,
    Generation,
    Pair,
    Snapshot,
    StateDocument,
    ValidityReport,
)

logger = logging.getLogger(__name__)


class StateStore:
    """Holds the ``current`` and ``previous`` snapshot of every pair.

    The store is the only mutator of this state. Readers get deep copies
    via ``snapshot`` and ``export_all``; writers go through ``merge``,
    ``put``, ``shuffle`` and ``import_all``. Both generations are seeded
    with placeholders for every configured pair, so a pair present in
    ``current`` is always present in ``previous``.
    """

    def __init__(self, pairs: list[Pair], assets: list[Asset]) -> None:
        self._pairs = list(pairs)
        self._assets = list(assets)
        self._generations: dict[Generation, dict[Pair, Snapshot]] = {
            generation: {p: Snapshot.placeholder(self._assets) for p in self._pairs}
            for generation in Generation
        }

    @property
    def pairs(self) -> list[Pair]:
        return list(self._pairs)

    @property
    def assets(self) -> list[Asset]:
        return list(self._assets)

    def _require_pair(self, pair: Pair) -> None:
        if pair not in self._generations[Generation.CURRENT]:
            raise PairNotFoundError(f"Unknown pair: {pair!r}", context={"pair": pair})

    # --- Reads ---

    def snapshot(self, generation: Generation, pair: Pair) -> Snapshot:
        self._require_pair(pair)
        return self._generations[generation][pair].model_copy(deep=True)

    def flags(self, generation: Generation = Generation.CURRENT) -> list[bool]:
        """Success flags of every asset of every pair in ``generation``."""
        return [
            flag
            for snapshot in self._generations[generation].values()
            for flag in snapshot.flags
        ]

    def export_all(self) -> StateDocument:
        """Deep copy of both generations, stamped with a fresh export id."""
        return StateDocument(
            current={p: s.model_copy(deep=True) for p, s in self._generations[Generation.CURRENT].items()},
            previous={p: s.model_copy(deep=True) for p, s in self._generations[Generation.PREVIOUS].items()},
            export_id=uuid.uuid4().hex,
            exported_at=int(time.time() * 1000),
        )

    # --- Writes ---

    def put(self, generation: Generation, pair: Pair, snapshot: Snapshot) -> None:
        """Replace the whole snapshot of ``pair`` in ``generation``."""
        self._require_pair(pair)
        self._generations[generation][pair] = snapshot.model_copy(deep=True)

    def merge(
        self,
        pair: Pair,
        incoming: Snapshot,
        *,
        force_granularity: bool = False,
    ) -> None:
        """Merge ``incoming`` into the current generation of ``pair``.

        Non-granular merges replace the stored snapshot. Granular merges
        keep every stored tick whose incoming counterpart failed, so a
        failed fetch never overwrites a good price. Incoming assets the
        store does not know are ignored.
        """
        self._require_pair(pair)
        if not force_granularity:
            self._generations[Generation.CURRENT][pair] = incoming.model_copy(deep=True)
            return

        stored = self._generations[Generation.CURRENT][pair]
        for asset, tick in incoming.assets.items():
            if asset not in stored.assets:
                logger.warning("Key mismatch for %s: %r is not a stored asset", pair, asset)
                continue
            if tick.success:
                stored.assets[asset] = tick.model_copy()
        stored.signature = incoming.signature.model_copy()

    def shuffle(
        self,
        source: Generation = Generation.CURRENT,
        target: Generation = Generation.PREVIOUS,
    ) -> None:
        """Replace ``target`` with a deep copy of ``source``."""
        if source == target:
            raise StateError(
                f"Cannot shuffle a generation onto itself: {source}",
                context={"source": source.value, "target": target.value},
            )
        self._generations[target] = {
            p: s.model_copy(deep=True) for p, s in self._generations[source].items()
        }

    def import_all(self, document: StateDocument) -> None:
        """Replace both generations with a deep copy of ``document``."""
        expected = set(self._pairs)
        for generation in Generation:
            found = set(document.generation(generation))
            if found != expected:
                raise StateError(
                    f"Imported {generation} pairs {sorted(found)} do not match "
                    f"configured pairs {sorted(expected)}",
                    context={"generation": generation.value, "pairs": sorted(found)},
                )
        self._generations = {
            generation: {
                p: s.model_copy(deep=True)
                for p, s in document.generation(generation).items()
            }
            for generation in Generation
        }

    def reconcile(
        self,
        pair: Pair,
        fresh: Snapshot,
        cache: StateDocument | None,
        validity: ValidityReport,
    ) -> None:
        """Combine a fresh fetch with a partially valid cache at cold start.

        The cached data is always older than ``fresh``. With an up-to-date
        cache the best cached generation becomes ``previous``; otherwise
        only ``current`` is set and ``previous`` waits for the next shuffle.
        """
        self._require_pair(pair)
        if cache is not None and validity.up_to_date:
            if validity.current and pair in cache.current:
                logger.debug("Reconcile %s: cache current -> previous", pair)
                self.put(Generation.PREVIOUS, pair, cache.current[pair])
            elif validity.previous and pair in cache.previous:
                logger.debug("Reconcile %s: cache previous -> previous", pair)
                self.put(Generation.PREVIOUS, pair, cache.previous[pair])
        self.put(Generation.CURRENT, pair, fresh)
