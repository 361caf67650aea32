"""Age-based and structural validity checks of a cached state document."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import NamedTuple

from price_table.core.exceptions import SchemaDriftError
from price_table.core.models import AgeLimit, Pair, StateDocument, ValidityReport

logger = logging.getLogger(__name__)

TABLE_HEADER = ["pair", "current", "previous", "up_to_date"]


class Age(NamedTuple):
    """Elapsed time split into units, seconds keeping their fraction."""

    days: int
    hours: int
    minutes: int
    seconds: float


def decompose_age(elapsed_ms: float) -> Age:
    total = abs(elapsed_ms) / 1000
    return Age(
        days=int(total // 86400),
        hours=int(total // 3600) % 24,
        minutes=int(total // 60) % 60,
        seconds=total % 60,
    )


def is_old(limit: AgeLimit, age: Age) -> bool:
    """True if ``age`` exceeds ``limit``, comparing days first, seconds last.

    An age exactly equal to the limit is not old.
    """
    return tuple(age) > (limit.days, limit.hours, limit.minutes, limit.seconds)


def validate(
    document: StateDocument,
    pair: Pair,
    age_limit: AgeLimit,
    now_ms: int | None = None,
) -> ValidityReport:
    """Report whether each generation of ``pair`` in ``document`` is usable.

    ``up_to_date`` only looks at the age of the current signature; a
    missing timestamp is never up to date.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    current = document.current.get(pair)
    previous = document.previous.get(pair)

    up_to_date = False
    if current is not None and current.signature.timestamp is not None:
        age = decompose_age(now_ms - current.signature.timestamp)
        up_to_date = not is_old(age_limit, age)

    return ValidityReport(
        current=current is not None and current.signature.success,
        previous=previous is not None and previous.signature.success,
        up_to_date=up_to_date,
    )


def validate_all(
    document: StateDocument,
    pairs: list[Pair],
    age_limit: AgeLimit,
    now_ms: int | None = None,
) -> dict[Pair, ValidityReport]:
    return {pair: validate(document, pair, age_limit, now_ms) for pair in pairs}


def consolidate(
    reports: Mapping[Pair, ValidityReport | Mapping[str, bool]],
) -> tuple[ValidityReport, list[list[str]]]:
    """AND every field across all pairs.

    Returns the consolidated report plus a printable table (header row
    first, then one row per pair).

    Raises:
        SchemaDriftError: Pairs report different field sets.
    """
    rows: list[list[str]] = [list(TABLE_HEADER)]
    if not reports:
        return ValidityReport(), rows

    normalized: dict[Pair, dict[str, bool]] = {
        pair: report.model_dump() if isinstance(report, ValidityReport) else dict(report)
        for pair, report in reports.items()
    }

    field_sets = {frozenset(fields) for fields in normalized.values()}
    if len(field_sets) > 1:
        raise SchemaDriftError(
            "Validity reports expose different fields",
            context={"fields": {p: sorted(f) for p, f in normalized.items()}},
        )

    consolidated = {
        field: all(fields[field] for fields in normalized.values())
        for field in next(iter(field_sets))
    }
    for pair, fields in normalized.items():
        rows.append([pair] + [str(fields.get(column, "-")) for column in TABLE_HEADER[1:]])

    return ValidityReport(**consolidated), rows


def render_table(rows: list[list[str]]) -> str:
    """Plain-text rendering of a validation table for log output."""
    if not rows:
        return ""
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    lines = ["  ".join(cell.ljust(width) for cell, width in zip(row, widths)) for row in rows]
    lines.insert(1, "  ".join("-" * width for width in widths))
    return "\n".join(lines)
