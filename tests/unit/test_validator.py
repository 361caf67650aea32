"""Tests for price_table.state.validator."""

import pytest

from price_table.core.exceptions import SchemaDriftError
from price_table.core.models import AgeLimit, ValidityReport
from price_table.state.validator import (
    TABLE_HEADER,
    Age,
    consolidate,
    decompose_age,
    is_old,
    render_table,
    validate,
    validate_all,
)

NOW = 1_700_000_000_000
LIMIT = AgeLimit(days=0, hours=0, minutes=4, seconds=59)


def _ms(minutes=0, seconds=0.0):
    return int((minutes * 60 + seconds) * 1000)


class TestDecomposeAge:
    def test_units(self):
        ms = ((2 * 86400) + (3 * 3600) + (4 * 60) + 5.5) * 1000
        assert decompose_age(ms) == Age(days=2, hours=3, minutes=4, seconds=5.5)

    def test_absolute_value(self):
        assert decompose_age(-_ms(1, 30)) == decompose_age(_ms(1, 30))


class TestIsOld:
    def test_equal_is_not_old(self):
        assert not is_old(LIMIT, Age(0, 0, 4, 59))

    def test_one_second_over(self):
        assert is_old(LIMIT, Age(0, 0, 5, 0))

    def test_fraction_over(self):
        assert is_old(LIMIT, Age(0, 0, 4, 59.5))

    def test_coarser_unit_wins(self):
        limit = AgeLimit(days=0, hours=1, minutes=0, seconds=0)
        assert not is_old(limit, Age(0, 0, 59, 59))
        assert is_old(AgeLimit(days=0, hours=0, minutes=59, seconds=59), Age(0, 1, 0, 0))


class TestValidate:
    def test_fresh_document(self, make_document):
        doc = make_document(timestamp=NOW - _ms(1))
        assert validate(doc, "eur", LIMIT, now_ms=NOW) == ValidityReport(
            current=True, previous=True, up_to_date=True
        )

    def test_exactly_at_limit_is_up_to_date(self, make_document):
        doc = make_document(timestamp=NOW - _ms(4, 59))
        assert validate(doc, "eur", LIMIT, now_ms=NOW).up_to_date is True

    def test_one_second_past_limit(self, make_document):
        doc = make_document(timestamp=NOW - _ms(5, 0))
        assert validate(doc, "eur", LIMIT, now_ms=NOW).up_to_date is False

    def test_failed_signature(self, make_document):
        doc = make_document(timestamp=NOW, current_success=False)
        report = validate(doc, "eur", LIMIT, now_ms=NOW)
        assert report.current is False
        assert report.previous is True

    def test_missing_pair(self, make_document):
        doc = make_document(pairs=["eur"])
        assert validate(doc, "usd", LIMIT, now_ms=NOW) == ValidityReport()

    def test_missing_timestamp(self, make_document):
        doc = make_document(timestamp=NOW)
        doc.current["eur"].signature.timestamp = None
        assert validate(doc, "eur", LIMIT, now_ms=NOW).up_to_date is False

    def test_validate_all(self, make_document):
        doc = make_document(timestamp=NOW)
        reports = validate_all(doc, ["eur", "usd"], LIMIT, now_ms=NOW)
        assert set(reports) == {"eur", "usd"}
        assert all(r.all_valid for r in reports.values())


class TestConsolidate:
    def test_and_across_pairs(self):
        reports = {
            "eur": ValidityReport(current=True, previous=True, up_to_date=True),
            "usd": ValidityReport(current=True, previous=False, up_to_date=True),
        }
        report, rows = consolidate(reports)
        assert report == ValidityReport(current=True, previous=False, up_to_date=True)
        assert rows[0] == TABLE_HEADER
        assert rows[1] == ["eur", "True", "True", "True"]
        assert rows[2] == ["usd", "True", "False", "True"]

    def test_plain_mappings(self):
        report, _ = consolidate(
            {
                "eur": {"current": True, "previous": True, "up_to_date": False},
                "usd": {"current": True, "previous": True, "up_to_date": True},
            }
        )
        assert report == ValidityReport(current=True, previous=True, up_to_date=False)

    def test_schema_drift(self):
        with pytest.raises(SchemaDriftError):
            consolidate(
                {
                    "eur": {"current": True, "previous": True, "up_to_date": True},
                    "usd": {"current": True, "previous": True},
                }
            )

    def test_empty(self):
        report, rows = consolidate({})
        assert report == ValidityReport()
        assert rows == [TABLE_HEADER]

    def test_render_table(self):
        _, rows = consolidate({"eur": ValidityReport(current=True)})
        text = render_table(rows)
        lines = text.splitlines()
        assert lines[0].split() == TABLE_HEADER
        assert set(lines[1].replace(" ", "")) == {"-"}
        assert lines[2].split() == ["eur", "True", "False", "False"]
