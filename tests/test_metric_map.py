"""Tests for metric aliases, dimensions, breakdown properties and filters."""

import pytest

from sitepulse.errors import UnknownDimension, UnknownMetric, UnsupportedFilter
from sitepulse.metric_map import (
    BREAKDOWN_PROPERTIES,
    Dimension,
    Filter,
    FilterOperator,
    Metric,
    get_breakdown_property,
    map_metrics,
    parse_dimension,
)


class TestMapMetrics:
    def test_aliases_deduplicated(self) -> None:
        assert map_metrics(["total_views", "pageviews"]) == [Metric.PAGEVIEWS]

    def test_order_of_first_occurrence(self) -> None:
        assert map_metrics(["bounce_rate", "visitors", "bounces"]) == [
            Metric.BOUNCE_RATE,
            Metric.VISITORS,
        ]

    def test_one_alias_expands_to_many(self) -> None:
        assert map_metrics(["traffic"]) == [Metric.VISITORS, Metric.VISITS, Metric.PAGEVIEWS]

    def test_case_and_whitespace_insensitive(self) -> None:
        assert map_metrics([" Sessions "]) == [Metric.VISITS]

    def test_unknown(self) -> None:
        with pytest.raises(UnknownMetric, match="not_a_real_metric"):
            map_metrics(["not_a_real_metric"])

    def test_unknown_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            map_metrics(["visitors", "nope"])

    def test_empty(self) -> None:
        assert map_metrics([]) == []


class TestDimensions:
    def test_parse(self) -> None:
        assert parse_dimension("visit:country") is Dimension.COUNTRY

    def test_page_pathname(self) -> None:
        assert parse_dimension("event:page.pathname") is Dimension.EVENT_PAGE_PATHNAME

    def test_unknown(self) -> None:
        with pytest.raises(UnknownDimension):
            parse_dimension("visit:shoe_size")

    def test_breakdown_property_lookup(self) -> None:
        prop = get_breakdown_property("event:page")
        assert (prop.label, prop.result_key) == ("Pages", "page")

    def test_breakdown_property_unknown(self) -> None:
        with pytest.raises(UnknownDimension, match="Unknown metric"):
            get_breakdown_property("visit:city")

    def test_breakdown_properties_are_dimensions(self) -> None:
        for key in BREAKDOWN_PROPERTIES:
            parse_dimension(key)


class TestFilter:
    def test_from_wire(self) -> None:
        f = Filter.from_wire(["is", "visit:browser", ["Chrome", "Firefox"]])
        assert f.operator is FilterOperator.IS
        assert f.dimension is Dimension.BROWSER
        assert f.values == ("Chrome", "Firefox")
        assert f.to_wire() == ["is", "visit:browser", ["Chrome", "Firefox"]]

    def test_single_value_string(self) -> None:
        assert Filter.from_wire(["contains", "event:page", "/blog"]).values == ("/blog",)

    @pytest.mark.parametrize(
        "operator, expected",
        [
            ("is", "visit:browser==Chrome|Safari"),
            ("is_not", "visit:browser!=Chrome|Safari"),
            ("contains", "visit:browser~Chrome|Safari"),
            ("contains_not", "visit:browser!~Chrome|Safari"),
        ],
    )
    def test_to_v1(self, operator: str, expected: str) -> None:
        assert Filter.from_wire([operator, "visit:browser", ["Chrome", "Safari"]]).to_v1() == expected

    def test_matches_has_no_v1_form(self) -> None:
        f = Filter.from_wire(["matches", "event:page", ["^/blog/.*"]])
        with pytest.raises(UnsupportedFilter):
            f.to_v1()

    def test_unknown_operator(self) -> None:
        with pytest.raises(UnsupportedFilter, match="operator"):
            Filter.from_wire(["like", "event:page", ["/x"]])

    def test_wrong_arity(self) -> None:
        with pytest.raises(UnsupportedFilter):
            Filter.from_wire(["is", "event:page"])

    def test_empty_values(self) -> None:
        with pytest.raises(UnsupportedFilter):
            Filter.from_wire(["is", "event:page", []])

    def test_unknown_dimension(self) -> None:
        with pytest.raises(UnknownDimension):
            Filter.from_wire(["is", "visit:planet", ["Mars"]])
