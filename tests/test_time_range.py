"""Tests for time range parsing and normalization."""

from datetime import date

import pytest

from sitepulse.errors import UnsupportedRange, UnsupportedUnit
from sitepulse.time_range import (
    NAMED_RANGES,
    CustomRange,
    NamedRange,
    RollingWindow,
    describe,
    normalize,
    parse_time_range,
)

REF = date(2024, 3, 15)

# ---------------------------------------------------------------------------
# normalize: named ranges
# ---------------------------------------------------------------------------


class TestNamedRanges:
    @pytest.mark.parametrize("name", NAMED_RANGES)
    def test_start_not_after_end(self, name: str) -> None:
        r = normalize(NamedRange(name), REF)
        assert r.start <= r.end

    @pytest.mark.parametrize(
        "name", ["today", "last_7_days", "last_30_days", "this_month", "this_year"]
    )
    def test_end_is_reference_date(self, name: str) -> None:
        assert normalize(NamedRange(name), REF).end == REF

    def test_today(self) -> None:
        r = normalize(NamedRange("today"), REF)
        assert (r.start, r.end, r.token) == (REF, REF, "day")

    def test_yesterday_is_single_day_pair(self) -> None:
        r = normalize(NamedRange("yesterday"), REF)
        day = date(2024, 3, 14)
        assert (r.start, r.end) == (day, day)
        assert r.token == (day, day)
        assert r.v1_params() == {"period": "custom", "date": "2024-03-14,2024-03-14"}

    def test_last_7_days(self) -> None:
        r = normalize(NamedRange("last_7_days"), REF)
        assert r.start == date(2024, 3, 8)
        assert r.token == "7d"

    def test_last_30_days(self) -> None:
        r = normalize(NamedRange("last_30_days"), REF)
        assert r.start == date(2024, 2, 14)
        assert r.token == "30d"

    def test_this_month(self) -> None:
        r = normalize(NamedRange("this_month"), REF)
        assert r.start == date(2024, 3, 1)
        assert r.token == "month"

    def test_last_month_anchored_at_previous_month_end(self) -> None:
        r = normalize(NamedRange("last_month"), REF)
        assert (r.start, r.end) == (date(2024, 2, 1), date(2024, 2, 29))
        assert r.token == "month"
        assert r.v1_params() == {"period": "month", "date": "2024-02-29"}
        assert r.v2_date_range() == ["2024-02-01", "2024-02-29"]

    def test_last_month_across_year_boundary(self) -> None:
        r = normalize(NamedRange("last_month"), date(2024, 1, 10))
        assert (r.start, r.end) == (date(2023, 12, 1), date(2023, 12, 31))

    def test_this_year(self) -> None:
        r = normalize(NamedRange("this_year"), REF)
        assert r.start == date(2024, 1, 1)
        assert r.token == "year"

    def test_unknown_name_raises(self) -> None:
        with pytest.raises(UnsupportedRange):
            normalize(NamedRange("fortnight"), REF)


# ---------------------------------------------------------------------------
# normalize: custom ranges and rolling windows
# ---------------------------------------------------------------------------


class TestCustomRange:
    def test_dates_used_verbatim(self) -> None:
        start, end = date(2024, 1, 1), date(2024, 3, 31)
        for ref in (REF, date(1999, 1, 1), date(2030, 6, 30)):
            r = normalize(CustomRange(start, end), ref)
            assert r.token == (start, end)
            assert (r.start, r.end) == (start, end)

    def test_params(self) -> None:
        r = normalize(CustomRange(date(2024, 1, 1), date(2024, 3, 31)), REF)
        assert r.v1_params() == {"period": "custom", "date": "2024-01-01,2024-03-31"}
        assert r.v2_date_range() == ["2024-01-01", "2024-03-31"]

    def test_single_day_allowed(self) -> None:
        d = date(2024, 2, 2)
        assert normalize(CustomRange(d, d), REF).token == (d, d)

    def test_inverted_range_rejected(self) -> None:
        with pytest.raises(UnsupportedRange, match="after end"):
            normalize(CustomRange(date(2024, 3, 31), date(2024, 1, 1)), REF)


class TestRollingWindow:
    def test_days(self) -> None:
        r = normalize(RollingWindow(14, "days"), REF)
        assert r.token == "14d"
        assert r.start == date(2024, 3, 1)
        assert r.end == REF

    def test_weeks_become_days(self) -> None:
        assert normalize(RollingWindow(2, "weeks"), REF).token == "14d"

    def test_months(self) -> None:
        r = normalize(RollingWindow(6, "months"), REF)
        assert r.token == "6mo"
        assert r.start == date(2023, 9, 15)

    def test_month_subtraction_clamps_day(self) -> None:
        r = normalize(RollingWindow(1, "months"), date(2024, 3, 31))
        assert r.start == date(2024, 2, 29)

    def test_unknown_unit(self) -> None:
        with pytest.raises(UnsupportedUnit):
            normalize(RollingWindow(3, "years"), REF)

    @pytest.mark.parametrize("count", [0, -1])
    def test_non_positive_count(self, count: int) -> None:
        with pytest.raises(UnsupportedRange):
            normalize(RollingWindow(count, "days"), REF)

    def test_default_reference_is_today(self) -> None:
        assert normalize(RollingWindow(3, "days")).end == date.today()


# ---------------------------------------------------------------------------
# parse_time_range
# ---------------------------------------------------------------------------


class TestParseTimeRange:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("last_7_days", NamedRange("last_7_days")),
            ("7d", NamedRange("last_7_days")),
            ("30d", NamedRange("last_30_days")),
            ("day", NamedRange("today")),
            ("month", NamedRange("this_month")),
            ("year", NamedRange("this_year")),
            ("14d", RollingWindow(14, "days")),
            ("3 weeks", RollingWindow(3, "weeks")),
            ("6mo", RollingWindow(6, "months")),
            ("12 months", RollingWindow(12, "months")),
            ("2024-01-01,2024-01-31", CustomRange(date(2024, 1, 1), date(2024, 1, 31))),
            ("2024-01-01..2024-01-31", CustomRange(date(2024, 1, 1), date(2024, 1, 31))),
        ],
    )
    def test_strings(self, value: str, expected) -> None:
        assert parse_time_range(value) == expected

    def test_custom_dict(self) -> None:
        spec = parse_time_range({"from": "2024-01-01", "to": "2024-03-31"})
        assert spec == CustomRange(date(2024, 1, 1), date(2024, 3, 31))

    def test_rolling_dict(self) -> None:
        assert parse_time_range({"last": 14, "unit": "days"}) == RollingWindow(14, "days")

    def test_custom_dict_missing_bound(self) -> None:
        with pytest.raises(UnsupportedRange):
            parse_time_range({"from": "2024-01-01"})

    def test_invalid_date(self) -> None:
        with pytest.raises(UnsupportedRange, match="Invalid date"):
            parse_time_range("2024-13-01,2024-12-31")

    def test_garbage(self) -> None:
        with pytest.raises(UnsupportedRange):
            parse_time_range("since forever")

    def test_spec_passes_through(self) -> None:
        spec = RollingWindow(5, "days")
        assert parse_time_range(spec) is spec


def test_describe() -> None:
    assert describe(NamedRange("last_7_days")) == "Last 7 days"
    assert describe(RollingWindow(6, "months")) == "Last 6 months"
    assert describe(CustomRange(date(2024, 1, 1), date(2024, 1, 31))) == "2024-01-01 to 2024-01-31"
