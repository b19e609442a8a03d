"""Shared terminal rendering: rich tables, status colours, export and charts."""

from __future__ import annotations

import csv
import json
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

console = Console()

# ---------------------------------------------------------------------------
# Status colours
# ---------------------------------------------------------------------------

_STATUS_STYLES: dict[str, str] = {
    **dict.fromkeys(("ready", "complete", "completed", "success"), "green"),
    **dict.fromkeys(("error", "failed", "failure", "canceled"), "red"),
    **dict.fromkeys(("building", "build", "deploying", "pending"), "yellow"),
    **dict.fromkeys(("initializing", "analyzing", "staged"), "blue"),
    **dict.fromkeys(("queued", "waiting", "planned"), "cyan"),
}


def status_text(state: str | None) -> Text:
    """Colour a deployment state the way the Vercel dashboard does."""
    if not state:
        return Text("Unknown", style="dim")
    return Text(state, style=_STATUS_STYLES.get(state.lower(), ""))


def muted(value: str) -> Text:
    return Text(value, style="dim")


def format_timestamp(value: str | int | float | None) -> str:
    """Render an ISO string or epoch-milliseconds value in local time."""
    if value is None or value == "":
        return "Unknown"
    try:
        if isinstance(value, (int, float)) or str(value).isdigit():
            moment = datetime.fromtimestamp(int(value) / 1000)
        else:
            moment = datetime.fromisoformat(str(value).replace("Z", "+00:00")).astimezone()
    except (ValueError, OverflowError, OSError):
        return str(value)
    return moment.strftime("%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


def make_table(title: str, columns: Sequence[str]) -> Table:
    table = Table(title=title, title_justify="left", title_style="bold")
    table.add_column("#", style="cyan", justify="right")
    for column in columns:
        table.add_column(column, header_style="cyan")
    return table


def breakdown_table(
    title: str,
    records: Sequence[dict[str, Any]],
    result_key: str,
    metrics: Sequence[str] = ("visitors",),
) -> Table:
    """One row per breakdown record: the dimension value then each metric."""
    table = make_table(title, [result_key.replace("_", " ").title(), *(m.title() for m in metrics)])
    for index, record in enumerate(records, start=1):
        table.add_row(
            str(index),
            escape(str(record.get(result_key) or "Unknown")),
            *(str(record.get(m, 0)) for m in metrics),
        )
    return table


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def _plain(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True, exclude_none=True)
    if isinstance(data, (list, tuple)):
        return [_plain(item) for item in data]
    return data


def write_csv(path: Path, records: Iterable[dict[str, Any]], columns: Sequence[str]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(columns)
        for record in records:
            writer.writerow([record.get(c, "") for c in columns])
    console.print(f"[green]Exported to {escape(str(path))}[/green]")
    return path


def write_json(path: Path, data: Any) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(_plain(data), indent=2, default=str), encoding="utf-8")
    console.print(f"[green]Exported to {escape(str(path))}[/green]")
    return path


# ---------------------------------------------------------------------------
# ASCII time-series chart
# ---------------------------------------------------------------------------

CHART_HEIGHT = 15
CHART_WIDTH = 78


def _short_date(value: Any) -> str:
    try:
        d = datetime.fromisoformat(str(value))
    except ValueError:
        return str(value)
    return f"{d.month}/{d.day}"


def _as_count(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def ascii_chart(
    points: Sequence[dict[str, Any]],
    height: int = CHART_HEIGHT,
    width: int = CHART_WIDTH,
) -> list[str]:
    """Bar chart of ``visitors`` per point, one column per point.

    More points than *width* are averaged into buckets. Returns the chart
    lines, bottom axis and date labels included; empty if nothing to plot.
    """
    visitors = [_as_count(p.get("visitors")) for p in points]
    peak = max(visitors, default=0)
    if peak <= 0:
        return []

    scale = len(visitors) / width if len(visitors) > width else 1.0
    columns = min(len(visitors), width)
    values: list[float] = []
    for x in range(columns):
        lo = int(x * scale)
        hi = max(min(int((x + 1) * scale), len(visitors)), lo + 1)
        bucket = visitors[lo:hi]
        values.append(sum(bucket) / len(bucket))

    lines: list[str] = []
    for y in range(height, -1, -1):
        if y == 0:
            lines.append("└" + "─" * columns)
            continue
        row = "│" + "".join("█" if v / peak * height >= y else " " for v in values)
        if y == height or y % 3 == 0:
            row += f" {round(y / height * peak)}"
        lines.append(row)

    spacing = max(columns // 10, 1)
    labels = ""
    for x in range(0, columns, spacing):
        label = _short_date(points[int(x * scale)].get("date"))
        labels += label if not labels else label.rjust(spacing)
    lines.append(labels)
    return lines


def print_timeseries(points: Sequence[dict[str, Any]]) -> None:
    if not points:
        console.print("No time series data available to plot")
        return

    console.print("\n[bold]Visitors Over Time:[/bold]")
    lines = ascii_chart(points)
    for line in lines:
        console.print(line, style="cyan", highlight=False)
    if lines:
        console.print(f"\nMax visitors: {max(_as_count(p.get('visitors')) for p in points)}")

    console.print("\nVisitor count by day:")
    entries = [f"{_short_date(p.get('date'))}: {p.get('visitors', 0)}".ljust(12) for p in points]
    for i in range(0, len(entries), 6):
        console.print("".join(entries[i : i + 6]), highlight=False)
