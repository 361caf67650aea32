"""Durable JSON state cache with atomic replace."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from price_table.acquisition.retry import Outcome, execute_with_retry
from price_table.core.exceptions import (
    CacheCorruptError,
    CacheNotFoundError,
    CacheWriteError,
    RetryLimitReachedError,
)
from price_table.core.models import StateDocument

logger = logging.getLogger(__name__)


class StateCache:
    """Whole-file persistence of a ``StateDocument``.

    A missing or corrupt file is a terminal condition ("no cache"), any
    other ``OSError`` is treated as transient and retried.
    """

    def __init__(self, path: str | Path, *, retry_delay: float = 0.0) -> None:
        self._path = Path(path)
        self._retry_delay = retry_delay

    @property
    def path(self) -> Path:
        return self._path

    def read_document(self) -> StateDocument:
        """Read and validate the cache file synchronously.

        Raises:
            CacheNotFoundError: The file does not exist.
            CacheCorruptError: The content is not a valid state document.
            OSError: Any other I/O failure.
        """
        context = {"path": str(self._path)}
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError as e:
            raise CacheNotFoundError(f"No state cache at {self._path}", context=context) from e
        try:
            return StateDocument.model_validate_json(raw)
        except ValidationError as e:
            raise CacheCorruptError(
                f"State cache at {self._path} is corrupt: {e.error_count()} errors",
                context=context,
            ) from e
        except UnicodeDecodeError as e:
            raise CacheCorruptError(
                f"State cache at {self._path} is not valid UTF-8", context=context
            ) from e

    def write_document(self, document: StateDocument) -> None:
        """Write to a temporary sibling file, then atomically replace."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(document.model_dump_json(indent=2))
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def read(self) -> Outcome[StateDocument]:
        try:
            document = await asyncio.to_thread(self.read_document)
        except (CacheNotFoundError, CacheCorruptError) as e:
            return Outcome.terminal(str(e))
        except OSError as e:
            return Outcome.soft_failure(f"Cannot read {self._path}: {e}")
        return Outcome.success(document)

    async def write(self, document: StateDocument) -> Outcome[None]:
        try:
            await asyncio.to_thread(self.write_document, document)
        except OSError as e:
            return Outcome.soft_failure(f"Cannot write {self._path}: {e}")
        return Outcome.success(None)

    async def load(self, retry_limit: int) -> StateDocument | None:
        """Load the cache with retries. Returns None when there is no usable cache."""
        try:
            outcome = await execute_with_retry(
                retry_limit, self.read, label="State cache import", delay=self._retry_delay
            )
        except RetryLimitReachedError:
            logger.error("State cache import failed after %d attempts", retry_limit)
            return None
        if not outcome.ok:
            logger.info("No usable state cache: %s", outcome.reason)
            return None
        logger.info("State cache imported from %s", self._path)
        return outcome.value

    async def save(self, document: StateDocument, retry_limit: int) -> None:
        """Persist ``document`` with retries.

        Raises:
            CacheWriteError: Every attempt failed.
        """
        try:
            await execute_with_retry(
                retry_limit,
                lambda: self.write(document),
                label="State cache export",
                delay=self._retry_delay,
            )
        except RetryLimitReachedError as e:
            raise CacheWriteError(
                f"Could not write state cache to {self._path}",
                context={"path": str(self._path), "reason": e.context.get("reason")},
            ) from e
        logger.debug("State cache exported to %s (%s)", self._path, document.export_id)
