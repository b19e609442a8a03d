"""`sitepulse plausible ...` commands: sites, metrics and stats."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from rich.markup import escape

from sitepulse.context import AppContext
from sitepulse.errors import SitePulseError
from sitepulse.metric_map import BREAKDOWN_PROPERTIES, Metric, get_breakdown_property
from sitepulse.models import BreakdownQuery
from sitepulse.time_range import describe, normalize, parse_time_range
from ui.components.render import (
    breakdown_table,
    console,
    make_table,
    print_timeseries,
    write_csv,
)

logger = logging.getLogger(__name__)

DEFAULT_PROPERTIES = "event:page,visit:referrer,visit:country"


def register(subparsers: argparse._SubParsersAction) -> None:
    plausible = subparsers.add_parser("plausible", help="Plausible analytics commands")
    commands = plausible.add_subparsers(dest="action", required=True)

    sites_cmd = commands.add_parser("sites", help="List all sites")
    sites_cmd.add_argument("-c", "--csv", type=Path, metavar="FILE", help="Export to CSV file")
    sites_cmd.set_defaults(handler=sites)

    metrics_cmd = commands.add_parser("metrics", help="List all available breakdown metrics")
    metrics_cmd.set_defaults(handler=metrics)

    stats_cmd = commands.add_parser("stats", help="Show statistics for a site")
    stats_cmd.add_argument("-s", "--site", help="Site domain (default: first site)")
    stats_cmd.add_argument(
        "-p",
        "--period",
        default="30d",
        help="Time period: day, yesterday, 7d, 30d, month, last_month, 6mo, "
        "or YYYY-MM-DD,YYYY-MM-DD (default: 30d)",
    )
    stats_cmd.add_argument("-l", "--limit", type=int, default=10, help="Number of results to show")
    stats_cmd.add_argument(
        "-m",
        "--metrics",
        default=DEFAULT_PROPERTIES,
        help=f"Breakdown properties, comma-separated (default: {DEFAULT_PROPERTIES})",
    )
    stats_cmd.add_argument(
        "-c", "--csv", type=Path, metavar="DIR", help="Export CSV files into this directory"
    )
    stats_cmd.add_argument(
        "-v", "--visualize", action="store_true", help="Show a visitors-over-time chart"
    )
    stats_cmd.add_argument(
        "--all-pages", action="store_true", help="Fetch every result page, not just the first"
    )
    stats_cmd.set_defaults(handler=stats)


async def sites(context: AppContext, args: argparse.Namespace) -> None:
    async with context.plausible_client() as client:
        site_list = await client.get_sites()

    if args.csv:
        write_csv(args.csv, [s.model_dump() for s in site_list], ["domain", "timezone"])

    table = make_table("Plausible Sites", ["Domain", "Timezone"])
    for index, site in enumerate(site_list, start=1):
        table.add_row(str(index), escape(site.domain), site.timezone)
    console.print(table)


async def metrics(context: AppContext, args: argparse.Namespace) -> None:
    table = make_table("Available Breakdown Metrics", ["Metric Key", "Description"])
    for index, prop in enumerate(BREAKDOWN_PROPERTIES.values(), start=1):
        table.add_row(str(index), prop.key, prop.label)
    console.print(table)
    console.print("\nUse these metric keys with the stats command:")
    console.print("[yellow]  sitepulse plausible stats -s yoursite.com -m visit:browser[/yellow]")


def csv_filename(directory: Path, site_id: str, prop: str, period: str) -> Path:
    """``<dir>/<site>_<property with ':' as '_'>_<period>.csv``."""
    safe_period = period.replace(",", "_").replace("..", "_").replace("/", "-")
    return Path(directory) / f"{site_id}_{prop.replace(':', '_')}_{safe_period}.csv"


async def stats(context: AppContext, args: argparse.Namespace) -> None:
    spec = parse_time_range(args.period)
    time_range = normalize(spec)

    async with context.plausible_client() as client:
        site_id = args.site
        if not site_id:
            site_list = await client.get_sites()
            if not site_list:
                console.print("[red]No sites found[/red]")
                return
            site_id = site_list[0].domain

        console.print(
            f"\n[bold]Plausible Analytics for [green]{escape(site_id)}[/green] - "
            f"{escape(describe(spec))}[/bold]"
        )

        if args.visualize:
            try:
                print_timeseries(await client.timeseries(site_id, time_range))
            except SitePulseError as exc:
                logger.warning("Time series unavailable: %s", exc)
                console.print("[red]Could not fetch time series data for visualization[/red]")

        queries: dict[str, BreakdownQuery] = {}
        for prop in dict.fromkeys(p.strip() for p in args.metrics.split(",") if p.strip()):
            if prop not in BREAKDOWN_PROPERTIES:
                console.print(
                    f"[red]Unknown metric: {escape(prop)}. "
                    "Run 'sitepulse plausible metrics' to see available metrics.[/red]"
                )
                continue
            queries[prop] = BreakdownQuery(
                site_id=site_id, property=prop, time_range=time_range, limit=args.limit
            )

        outcomes = await client.fetch_breakdowns(queries, all_pages=args.all_pages)

    for prop, outcome in outcomes.items():
        if not outcome.ok:
            console.print(f"[red]Error fetching {escape(prop)} data: {escape(str(outcome.error))}[/red]")
            continue
        if not outcome.value:
            continue

        info = get_breakdown_property(prop)
        console.print(breakdown_table(f"Top {info.label}", outcome.value, info.result_key))
        if args.csv:
            write_csv(
                csv_filename(args.csv, site_id, prop, args.period),
                outcome.value,
                [info.result_key, Metric.VISITORS.value],
            )
