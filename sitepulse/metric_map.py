"""Metric aliases, dimensions and filters understood by the Plausible API."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator

from sitepulse.errors import UnknownDimension, UnknownMetric, UnsupportedFilter


class Metric(str, Enum):
    VISITORS = "visitors"
    VISITS = "visits"
    PAGEVIEWS = "pageviews"
    VIEWS_PER_VISIT = "views_per_visit"
    BOUNCE_RATE = "bounce_rate"
    VISIT_DURATION = "visit_duration"
    EVENTS = "events"


class Dimension(str, Enum):
    # Event dimensions
    EVENT_NAME = "event:name"
    EVENT_PAGE = "event:page"
    EVENT_PAGE_PATHNAME = "event:page.pathname"
    EVENT_HOSTNAME = "event:hostname"
    # Visit dimensions
    SOURCE = "visit:source"
    REFERRER = "visit:referrer"
    UTM_MEDIUM = "visit:utm_medium"
    UTM_SOURCE = "visit:utm_source"
    UTM_CAMPAIGN = "visit:utm_campaign"
    UTM_CONTENT = "visit:utm_content"
    UTM_TERM = "visit:utm_term"
    DEVICE = "visit:device"
    BROWSER = "visit:browser"
    BROWSER_VERSION = "visit:browser_version"
    OS = "visit:os"
    OS_VERSION = "visit:os_version"
    COUNTRY = "visit:country"
    REGION = "visit:region"
    CITY = "visit:city"
    ENTRY_PAGE = "visit:entry_page"
    EXIT_PAGE = "visit:exit_page"
    # Time dimensions
    TIME = "time"
    TIME_MINUTE = "time:minute"
    TIME_HOUR = "time:hour"
    TIME_DAY = "time:day"
    TIME_WEEK = "time:week"
    TIME_MONTH = "time:month"


class FilterOperator(str, Enum):
    IS = "is"
    IS_NOT = "is_not"
    CONTAINS = "contains"
    CONTAINS_NOT = "contains_not"
    MATCHES = "matches"
    MATCHES_NOT = "matches_not"


# Friendly name -> provider metrics. One alias may expand to several.
METRIC_ALIASES: dict[str, tuple[Metric, ...]] = {
    **{m.value: (m,) for m in Metric},
    "unique_visitors": (Metric.VISITORS,),
    "users": (Metric.VISITORS,),
    "sessions": (Metric.VISITS,),
    "total_views": (Metric.PAGEVIEWS,),
    "views": (Metric.PAGEVIEWS,),
    "page_views": (Metric.PAGEVIEWS,),
    "pages_per_visit": (Metric.VIEWS_PER_VISIT,),
    "avg_duration": (Metric.VISIT_DURATION,),
    "time_on_site": (Metric.VISIT_DURATION,),
    "bounces": (Metric.BOUNCE_RATE,),
    "engagement": (Metric.BOUNCE_RATE, Metric.VISIT_DURATION),
    "traffic": (Metric.VISITORS, Metric.VISITS, Metric.PAGEVIEWS),
}


def map_metrics(aliases: Iterable[str]) -> list[Metric]:
    """Expand friendly metric names, keeping first occurrences in order.

    Raises:
        UnknownMetric: an alias is not in ``METRIC_ALIASES``.
    """
    seen: dict[Metric, None] = {}
    for alias in aliases:
        key = str(alias).strip().lower()
        if key not in METRIC_ALIASES:
            raise UnknownMetric(
                f"Unknown metric '{alias}'. Supported: {', '.join(sorted(METRIC_ALIASES))}"
            )
        for metric in METRIC_ALIASES[key]:
            seen.setdefault(metric, None)
    return list(seen)


def parse_dimension(name: str) -> Dimension:
    try:
        return Dimension(str(name).strip())
    except ValueError:
        raise UnknownDimension(
            f"Unknown dimension '{name}'. Supported: {', '.join(d.value for d in Dimension)}"
        ) from None


def parse_dimensions(names: Iterable[str]) -> list[Dimension]:
    return [parse_dimension(n) for n in names]


# ---------------------------------------------------------------------------
# Breakdown properties (Stats API v1)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BreakdownProperty:
    """A v1 breakdown property with its display label and result key."""

    key: str
    label: str
    result_key: str


BREAKDOWN_PROPERTIES: dict[str, BreakdownProperty] = {
    p.key: p
    for p in (
        BreakdownProperty("event:page", "Pages", "page"),
        BreakdownProperty("visit:referrer", "Referrers", "referrer"),
        BreakdownProperty("visit:country", "Countries", "country"),
        BreakdownProperty("visit:browser", "Browsers", "browser"),
        BreakdownProperty("visit:os", "Operating Systems", "os"),
        BreakdownProperty("visit:device", "Devices", "device"),
        BreakdownProperty("visit:source", "Sources", "source"),
        BreakdownProperty("visit:utm_medium", "UTM Medium", "utm_medium"),
        BreakdownProperty("visit:utm_source", "UTM Source", "utm_source"),
        BreakdownProperty("visit:utm_campaign", "UTM Campaign", "utm_campaign"),
    )
}


def get_breakdown_property(key: str) -> BreakdownProperty:
    try:
        return BREAKDOWN_PROPERTIES[key]
    except KeyError:
        raise UnknownDimension(
            f"Unknown metric: {key}. Run 'sitepulse plausible metrics' to see available metrics."
        ) from None


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

_V1_OPERATORS = {
    FilterOperator.IS: "==",
    FilterOperator.IS_NOT: "!=",
    FilterOperator.CONTAINS: "~",
    FilterOperator.CONTAINS_NOT: "!~",
}


class Filter(BaseModel):
    """A single ``(operator, dimension, values)`` filter triple."""

    model_config = ConfigDict(frozen=True)

    operator: FilterOperator
    dimension: Dimension
    values: tuple[str, ...]

    @field_validator("values")
    @classmethod
    def _values_not_empty(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("filter needs at least one value")
        return v

    @classmethod
    def from_wire(cls, triple: Sequence[object]) -> "Filter":
        """Build from the ``["is", "visit:browser", ["Chrome"]]`` form.

        Raises:
            UnsupportedFilter: the triple is malformed or uses an unknown
                operator.
            UnknownDimension: the dimension is not recognised.
        """
        if len(triple) != 3:
            raise UnsupportedFilter(f"Filter must be [operator, dimension, values], got {triple!r}")
        operator, dimension, values = triple
        try:
            op = FilterOperator(str(operator))
        except ValueError:
            raise UnsupportedFilter(
                f"Unsupported filter operator '{operator}'. "
                f"Supported: {', '.join(o.value for o in FilterOperator)}"
            ) from None
        if isinstance(values, str):
            values = [values]
        if not isinstance(values, (list, tuple)) or not values:
            raise UnsupportedFilter(f"Filter values must be a non-empty list, got {values!r}")
        return cls(
            operator=op,
            dimension=parse_dimension(str(dimension)),
            values=tuple(str(v) for v in values),
        )

    def to_wire(self) -> list[object]:
        """The v2 query API form."""
        return [self.operator.value, self.dimension.value, list(self.values)]

    def to_v1(self) -> str:
        """The v1 ``filters`` expression, e.g. ``visit:browser==Chrome|Firefox``."""
        symbol = _V1_OPERATORS.get(self.operator)
        if symbol is None:
            raise UnsupportedFilter(
                f"Operator '{self.operator.value}' is not supported by the breakdown endpoint"
            )
        return f"{self.dimension.value}{symbol}{'|'.join(self.values)}"
