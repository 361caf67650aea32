"""Bounded retry executor with soft/terminal failure classification."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from price_table.core.exceptions import RetryLimitReachedError, TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one attempt of a retried operation.

    Expected failures are values, not exceptions: ``ok=False`` with
    ``retryable=True`` asks for another attempt, ``retryable=False`` stops
    the retry loop immediately.
    """

    value: T | None = None
    ok: bool = False
    retryable: bool = True
    reason: str | None = None

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(value=value, ok=True, retryable=False)

    @classmethod
    def soft_failure(cls, reason: str, value: T | None = None) -> Outcome[T]:
        return cls(value=value, ok=False, retryable=True, reason=reason)

    @classmethod
    def terminal(cls, reason: str, value: T | None = None) -> Outcome[T]:
        return cls(value=value, ok=False, retryable=False, reason=reason)


async def execute_with_retry(
    limit: int,
    attempt: Callable[[], Awaitable[Outcome[T]]],
    *,
    label: str,
    delay: float = 0.0,
) -> Outcome[T]:
    """Run ``attempt`` up to ``limit`` times.

    Returns the first successful outcome, or the first non-retryable
    failed outcome without further attempts. A ``TransientError`` raised
    by the attempt counts as a retryable failure; any other exception
    propagates unchanged.

    Raises:
        ValueError: If ``limit`` is smaller than 1.
        RetryLimitReachedError: If every attempt failed retryably.
    """
    if limit < 1:
        raise ValueError(f"retry limit must be >= 1, got {limit}")

    last_reason: str | None = None
    for number in range(1, limit + 1):
        logger.debug("%s [ATTEMPT %d of %d]", label, number, limit)
        try:
            outcome = await attempt()
        except TransientError as e:
            outcome = Outcome.soft_failure(str(e))

        if outcome.ok:
            logger.debug("%s [SUCCESS] on attempt %d", label, number)
            return outcome

        if not outcome.retryable:
            logger.warning("%s [FAILED] not retryable: %s", label, outcome.reason)
            return outcome

        last_reason = outcome.reason
        logger.warning(
            "%s [INCOMPLETE] attempt %d of %d: %s",
            label, number, limit, last_reason,
        )
        if number < limit and delay > 0:
            await asyncio.sleep(delay)

    logger.error("%s [FAILED] retry limit of %d reached", label, limit)
    raise RetryLimitReachedError(
        f"{label}: retry limit of {limit} reached",
        context={"label": label, "attempts": limit, "reason": last_reason},
    )
