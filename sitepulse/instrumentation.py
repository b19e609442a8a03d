"""Prometheus metrics for API clients and tool invocations.

All metric objects are defined here so they can be imported from any module.
"""

from pathlib import Path

from prometheus_client import REGISTRY, Counter, Histogram, write_to_textfile

# ---------------------------------------------------------------------------
# Provider API metrics
# ---------------------------------------------------------------------------

API_REQUESTS = Counter(
    "sitepulse_api_requests_total",
    "Total provider API requests",
    ["service", "outcome"],  # success, api_error, transport_error, decode_error
)

API_DURATION = Histogram(
    "sitepulse_api_request_duration_seconds",
    "Duration of provider API requests in seconds",
    ["service"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ---------------------------------------------------------------------------
# Tool invocation metrics
# ---------------------------------------------------------------------------

TOOL_INVOCATIONS = Counter(
    "sitepulse_tool_invocations_total",
    "Total number of MCP tool invocations",
    ["tool_name", "status"],
)


def write_metrics(path: Path) -> None:
    """Dump the default registry in textfile-collector format."""
    write_to_textfile(str(path), REGISTRY)
