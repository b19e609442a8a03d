"""
Plausible Analytics MCP Server

Exposes the Plausible Stats API as tools for a conversational agent: site
listing, ad-hoc breakdown queries, complete paged breakdowns and
multi-property fan-out.  Runs over stdio by default (MCP_TRANSPORT=sse for
SSE on MCP_HOST:MCP_PORT).
"""

import logging
from datetime import UTC, datetime
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import ValidationError

from sitepulse.config import Settings
from sitepulse.context import AppContext
from sitepulse.errors import SitePulseError
from sitepulse.instrumentation import TOOL_INVOCATIONS
from sitepulse.metric_map import Filter, map_metrics, parse_dimensions
from sitepulse.models import BreakdownQuery, QueryRequest
from sitepulse.time_range import normalize, parse_time_range

# ---------------------------------------------------------------------------
# Logging (stderr: stdout carries the stdio transport)
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("plausible_mcp")

# ---------------------------------------------------------------------------
# MCP server + context
# ---------------------------------------------------------------------------
settings = Settings()
context = AppContext(settings)
mcp = FastMCP("plausible-mcp", host=settings.mcp_host, port=settings.mcp_port)

DATE_RANGE_HELP = (
    "Time period for the stats. Options:\n"
    "- day (today), yesterday\n"
    "- 7d, 30d (last N days), also any Nd / Nw\n"
    "- month (current month), last_month, year\n"
    "- 6mo, 12mo (last N months)\n"
    "- custom: 'YYYY-MM-DD,YYYY-MM-DD'\n"
    "Default: '7d'"
)

BREAKDOWN_DESCRIPTION = (
    "Get detailed analytics breakdown for a site. Available metrics:\n"
    "visitors - Number of unique visitors\n"
    "visits - Number of visits/sessions\n"
    "pageviews - Number of pageview events\n"
    "views_per_visit - Pageviews divided by visits\n"
    "bounce_rate - Bounce rate percentage\n"
    "visit_duration - Visit duration in seconds\n"
    "events - Number of events (pageviews + custom events)\n"
    "Aliases such as total_views, sessions or engagement are also accepted.\n"
    "\nAvailable dimensions:\n"
    "Event dimensions: event:name, event:page, event:page.pathname, event:hostname\n"
    "Visit dimensions: visit:source, visit:referrer, visit:utm_medium, "
    "visit:utm_source, visit:utm_campaign, visit:utm_content, visit:utm_term, "
    "visit:device, visit:browser, visit:browser_version, visit:os, "
    "visit:os_version, visit:country, visit:region, visit:city, "
    "visit:entry_page, visit:exit_page\n"
    "Time dimensions: time, time:minute and time:hour (only for 'day'), "
    "time:day, time:week, time:month\n"
    "\nFilters are [operator, dimension, [values]] with operators: is, is_not, "
    "contains, contains_not, matches, matches_not. Examples:\n"
    '["is", "visit:browser", ["Chrome"]]\n'
    '["contains", "event:page", ["/blog"]]\n'
    f"\n{DATE_RANGE_HELP}"
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fail(tool_name: str, exc: Exception) -> ToolError:
    """Record a failed invocation and build the error the client will see."""
    TOOL_INVOCATIONS.labels(tool_name=tool_name, status="error").inc()
    logger.error("Tool %s failed: %s", tool_name, exc)
    return ToolError(str(exc))


def _succeeded(tool_name: str) -> None:
    TOOL_INVOCATIONS.labels(tool_name=tool_name, status="success").inc()


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
async def list_sites() -> dict:
    """List all sites in your Plausible account.

    Returns:
        Dictionary with the site count and each site's domain and timezone.
    """
    logger.info("Tool list_sites invoked")
    try:
        async with context.plausible_client() as client:
            sites = await client.get_sites()
    except SitePulseError as exc:
        raise _fail("list_sites", exc) from exc

    _succeeded("list_sites")
    return {"count": len(sites), "sites": [s.model_dump() for s in sites]}


@mcp.tool(description=BREAKDOWN_DESCRIPTION)
async def get_breakdown(
    site_id: str,
    metrics: list[str] | None = None,
    dimensions: list[str] | None = None,
    date_range: str | dict[str, Any] | None = None,
    filters: list[list[str | list[str]]] | None = None,
    limit: int | None = None,
    page: int | None = None,
) -> dict:
    logger.info(
        "Tool get_breakdown invoked — site=%s metrics=%s dimensions=%s range=%s",
        site_id,
        metrics,
        dimensions,
        date_range,
    )
    try:
        time_range = normalize(parse_time_range(date_range or "7d"))
        request = QueryRequest(
            site_id=site_id,
            metrics=tuple(map_metrics(metrics or ["visitors"])),
            dimensions=tuple(parse_dimensions(dimensions or ["time:day"])),
            time_range=time_range,
            filters=tuple(Filter.from_wire(f) for f in filters or []),
            limit=limit,
            page=page,
        )
        async with context.plausible_client() as client:
            data = await client.query(request)
    except (SitePulseError, ValidationError) as exc:
        raise _fail("get_breakdown", exc) from exc

    _succeeded("get_breakdown")
    return {"range": time_range.to_dict(), **data}


@mcp.tool()
async def get_full_breakdown(
    site_id: str,
    property: str = "event:page",
    date_range: str | dict[str, Any] | None = None,
    metrics: list[str] | None = None,
    limit: int = 1000,
) -> dict:
    """Get a complete breakdown for one property, following every result page.

    Use this tool when the user needs the full list (e.g. every page or every
    referrer) rather than just the top entries.

    Args:
        site_id: The domain of your site (e.g. 'example.com').
        property: Breakdown property: event:page, visit:source, visit:referrer,
            visit:country, visit:browser, visit:os, visit:device,
            visit:utm_medium, visit:utm_source or visit:utm_campaign.
        date_range: Time period, e.g. '30d', 'last_month', '6mo' or
            'YYYY-MM-DD,YYYY-MM-DD'. Default: '30d'.
        metrics: Metrics to return (default: ['visitors']).
        limit: Page size (1-1000, default 1000).

    Returns:
        Dictionary with the resolved date range, record count and records.
    """
    logger.info("Tool get_full_breakdown invoked — site=%s property=%s", site_id, property)
    try:
        time_range = normalize(parse_time_range(date_range or "30d"))
        query = BreakdownQuery(
            site_id=site_id,
            property=property,
            time_range=time_range,
            metrics=tuple(map_metrics(metrics or ["visitors"])),
            limit=limit,
        )
        async with context.plausible_client() as client:
            records = await client.fetch_all_breakdown(query)
    except (SitePulseError, ValidationError) as exc:
        raise _fail("get_full_breakdown", exc) from exc

    _succeeded("get_full_breakdown")
    return {
        "site_id": query.site_id,
        "property": property,
        "range": time_range.to_dict(),
        "count": len(records),
        "results": records,
    }


@mcp.tool()
async def get_breakdowns(
    site_id: str,
    properties: list[str],
    date_range: str | dict[str, Any] | None = None,
    limit: int = 10,
) -> dict:
    """Get top entries for several breakdown properties at once.

    Use this tool for overview questions such as "where do visitors come from
    and which pages do they read". Properties are fetched concurrently; a
    failure for one property is reported without hiding the others.

    Args:
        site_id: The domain of your site (e.g. 'example.com').
        properties: Breakdown properties, e.g. ['event:page', 'visit:source'].
        date_range: Time period, e.g. '7d', 'month' (default '30d').
        limit: Number of entries per property (default 10).

    Returns:
        Dictionary with per-property results and per-property errors.
    """
    logger.info("Tool get_breakdowns invoked — site=%s properties=%s", site_id, properties)
    try:
        time_range = normalize(parse_time_range(date_range or "30d"))
        queries = {
            prop: BreakdownQuery(
                site_id=site_id, property=prop, time_range=time_range, limit=limit
            )
            for prop in dict.fromkeys(properties)
        }
        async with context.plausible_client() as client:
            outcomes = await client.fetch_breakdowns(queries)
    except (SitePulseError, ValidationError) as exc:
        raise _fail("get_breakdowns", exc) from exc

    results = {key: o.value for key, o in outcomes.items() if o.ok}
    errors = {key: str(o.error) for key, o in outcomes.items() if not o.ok}
    if queries and not results:
        raise _fail("get_breakdowns", SitePulseError("; ".join(f"{k}: {v}" for k, v in errors.items())))

    _succeeded("get_breakdowns")
    return {"range": time_range.to_dict(), "results": results, "errors": errors}


@mcp.tool()
def health_check() -> dict:
    """Check whether the Plausible MCP server is healthy.

    Returns:
        Dictionary with server status, API URL and timestamp.
    """
    logger.info("Tool health_check invoked")
    return {
        "status": "healthy",
        "server": "plausible-mcp",
        "api_url": settings.plausible_api_url,
        "credential_resolved": context.secrets.cached("PLAUSIBLE_API_KEY"),
        "timestamp": datetime.now(UTC).isoformat(),
    }


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------


def main() -> None:
    logger.info("Using Plausible API URL: %s", settings.plausible_api_url)
    if settings.mcp_transport == "sse":
        logger.info(
            "Starting Plausible MCP server on %s:%d (SSE) ...", settings.mcp_host, settings.mcp_port
        )
        mcp.run(transport="sse")
    else:
        logger.info("Plausible MCP Server running on stdio")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
