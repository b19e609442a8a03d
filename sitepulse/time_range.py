"""Time range normalization.

Turns user-facing range specifications into explicit start/end dates plus
the token the Plausible API expects:

- ``NamedRange``: a fixed relative window such as ``last_7_days``.
- ``CustomRange``: two calendar dates, used verbatim.
- ``RollingWindow``: the last *count* days, weeks or months ending today.

All dates are plain calendar dates. No timezone conversion is applied; the
reference date is whatever the caller's local clock says today is.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Union

from sitepulse.errors import UnsupportedRange, UnsupportedUnit

NAMED_RANGES = (
    "today",
    "yesterday",
    "last_7_days",
    "last_30_days",
    "this_month",
    "last_month",
    "this_year",
)

ROLLING_UNITS = ("days", "weeks", "months")


@dataclass(frozen=True)
class NamedRange:
    name: str


@dataclass(frozen=True)
class CustomRange:
    start: date
    end: date


@dataclass(frozen=True)
class RollingWindow:
    count: int
    unit: str


TimeRangeSpec = Union[NamedRange, CustomRange, RollingWindow]

Token = Union[str, tuple[date, date]]


@dataclass(frozen=True)
class NormalizedRange:
    """Explicit date bounds plus the provider token for a range.

    ``anchor`` is set when a relative token must be evaluated against a date
    other than today (``last_month`` is ``"month"`` as of the previous
    month's last day).
    """

    start: date
    end: date
    token: Token
    anchor: date | None = None

    def v1_params(self) -> dict[str, str]:
        """``period``/``date`` query parameters for the Stats API v1."""
        if isinstance(self.token, tuple):
            first, last = self.token
            return {"period": "custom", "date": f"{first.isoformat()},{last.isoformat()}"}
        params = {"period": self.token}
        if self.anchor is not None:
            params["date"] = self.anchor.isoformat()
        return params

    def v2_date_range(self) -> str | list[str]:
        """``date_range`` value for the Stats API v2 query endpoint."""
        if isinstance(self.token, tuple):
            return [self.token[0].isoformat(), self.token[1].isoformat()]
        if self.anchor is not None:
            return [self.start.isoformat(), self.end.isoformat()]
        return self.token

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "date_range": self.v2_date_range(),
        }


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------


def _first_of_month(d: date) -> date:
    return d.replace(day=1)


def _subtract_months(d: date, months: int) -> date:
    """Move *d* back by whole calendar months, clamping the day of month."""
    total = d.year * 12 + (d.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _normalize_named(name: str, ref: date) -> NormalizedRange:
    if name == "today":
        return NormalizedRange(ref, ref, "day")
    if name == "yesterday":
        day = ref - timedelta(days=1)
        return NormalizedRange(day, day, (day, day))
    if name == "last_7_days":
        return NormalizedRange(ref - timedelta(days=7), ref, "7d")
    if name == "last_30_days":
        return NormalizedRange(ref - timedelta(days=30), ref, "30d")
    if name == "this_month":
        return NormalizedRange(_first_of_month(ref), ref, "month")
    if name == "last_month":
        end = _first_of_month(ref) - timedelta(days=1)
        return NormalizedRange(_first_of_month(end), end, "month", anchor=end)
    if name == "this_year":
        return NormalizedRange(ref.replace(month=1, day=1), ref, "year")
    raise UnsupportedRange(
        f"Unsupported time range '{name}'. Supported: {', '.join(NAMED_RANGES)}"
    )


def _normalize_rolling(count: int, unit: str, ref: date) -> NormalizedRange:
    if unit not in ROLLING_UNITS:
        raise UnsupportedUnit(
            f"Unsupported unit '{unit}'. Supported: {', '.join(ROLLING_UNITS)}"
        )
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise UnsupportedRange(f"Rolling window count must be a positive integer, got {count!r}")

    if unit == "days":
        return NormalizedRange(ref - timedelta(days=count), ref, f"{count}d")
    if unit == "weeks":
        days = count * 7
        return NormalizedRange(ref - timedelta(days=days), ref, f"{days}d")
    return NormalizedRange(_subtract_months(ref, count), ref, f"{count}mo")


def normalize(spec: TimeRangeSpec, reference_date: date | None = None) -> NormalizedRange:
    """Resolve *spec* against *reference_date* (default: today)."""
    ref = reference_date or date.today()

    if isinstance(spec, NamedRange):
        return _normalize_named(spec.name, ref)
    if isinstance(spec, CustomRange):
        if spec.start is None or spec.end is None:
            raise UnsupportedRange("Custom range requires both 'from' and 'to' dates")
        if spec.start > spec.end:
            raise UnsupportedRange(
                f"Custom range start {spec.start.isoformat()} is after end {spec.end.isoformat()}"
            )
        return NormalizedRange(spec.start, spec.end, (spec.start, spec.end))
    if isinstance(spec, RollingWindow):
        return _normalize_rolling(spec.count, spec.unit, ref)
    raise UnsupportedRange(f"Not a time range specification: {spec!r}")


# ---------------------------------------------------------------------------
# Parsing user input
# ---------------------------------------------------------------------------

# Provider tokens that map onto a named range rather than a rolling window.
_TOKEN_ALIASES: dict[str, TimeRangeSpec] = {
    "day": NamedRange("today"),
    "month": NamedRange("this_month"),
    "year": NamedRange("this_year"),
    "7d": NamedRange("last_7_days"),
    "30d": NamedRange("last_30_days"),
}

_ROLLING_RE = re.compile(r"^(\d+)\s*(d|days?|w|weeks?|mo|months?)$")
_UNIT_NAMES = {
    "d": "days",
    "day": "days",
    "days": "days",
    "w": "weeks",
    "week": "weeks",
    "weeks": "weeks",
    "mo": "months",
    "month": "months",
    "months": "months",
}
_CUSTOM_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\s*(?:,|\.\.)\s*(\d{4}-\d{2}-\d{2})$")


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise UnsupportedRange(f"Invalid date '{value}', expected YYYY-MM-DD") from exc


def parse_time_range(value: TimeRangeSpec | str | dict[str, Any]) -> TimeRangeSpec:
    """Build a range spec from CLI or tool input.

    Accepts named ranges (``last_7_days``), provider tokens (``7d``,
    ``6mo``, ``month``), ``"2024-01-01,2024-01-31"``, ``{"from": .., "to": ..}``
    and ``{"last": 14, "unit": "days"}``.
    """
    if isinstance(value, (NamedRange, CustomRange, RollingWindow)):
        return value

    if isinstance(value, dict):
        if "from" in value or "to" in value:
            if not value.get("from") or not value.get("to"):
                raise UnsupportedRange("Custom range requires both 'from' and 'to' dates")
            return CustomRange(_parse_date(value["from"]), _parse_date(value["to"]))
        if "last" in value:
            try:
                count = int(value["last"])
            except (TypeError, ValueError) as exc:
                raise UnsupportedRange(f"Invalid window length {value['last']!r}") from exc
            return RollingWindow(count, str(value.get("unit", "days")))
        raise UnsupportedRange(f"Unrecognized time range object: {value!r}")

    if not isinstance(value, str):
        raise UnsupportedRange(f"Unrecognized time range: {value!r}")

    text = value.strip().lower()
    if text in NAMED_RANGES:
        return NamedRange(text)
    if text in _TOKEN_ALIASES:
        return _TOKEN_ALIASES[text]

    match = _CUSTOM_RE.match(text)
    if match:
        return CustomRange(_parse_date(match.group(1)), _parse_date(match.group(2)))

    match = _ROLLING_RE.match(text)
    if match:
        return RollingWindow(int(match.group(1)), _UNIT_NAMES[match.group(2)])

    raise UnsupportedRange(
        f"Unsupported time range '{value}'. Use one of {', '.join(NAMED_RANGES)}, "
        f"a token like 7d/6mo, or 'YYYY-MM-DD,YYYY-MM-DD'"
    )


_LABELS = {
    "today": "Today",
    "yesterday": "Yesterday",
    "last_7_days": "Last 7 days",
    "last_30_days": "Last 30 days",
    "this_month": "This month",
    "last_month": "Last month",
    "this_year": "This year",
}


def describe(spec: TimeRangeSpec) -> str:
    """Human-readable label for report headers."""
    if isinstance(spec, NamedRange):
        return _LABELS.get(spec.name, spec.name)
    if isinstance(spec, CustomRange):
        return f"{spec.start.isoformat()} to {spec.end.isoformat()}"
    return f"Last {spec.count} {spec.unit}"
