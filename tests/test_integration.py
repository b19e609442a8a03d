"""Integration tests that spawn the Plausible MCP server as a subprocess.

The stdio round-trip needs no credentials. The live query runs only when
PLAUSIBLE_API_KEY and PLAUSIBLE_TEST_SITE are set.
"""

import json
import os
from pathlib import Path

import anyio
import pytest

from agent.mcp_client import MCPToolRegistry
from sitepulse.config import Settings

PROJECT_ROOT = Path(__file__).resolve().parent.parent

pytestmark = pytest.mark.integration


def _settings() -> Settings:
    return Settings(_env_file=None)


def test_stdio_round_trip(monkeypatch) -> None:
    monkeypatch.chdir(PROJECT_ROOT)

    async def _run() -> dict:
        async with MCPToolRegistry(_settings()) as registry:
            assert set(registry.tools) >= {"list_sites", "get_breakdown", "health_check"}
            return json.loads(await registry.call_tool("health_check", {}))

    result = anyio.run(_run)
    assert result["status"] == "healthy"
    assert result["server"] == "plausible-mcp"


@pytest.mark.skipif(
    not (os.environ.get("PLAUSIBLE_API_KEY") and os.environ.get("PLAUSIBLE_TEST_SITE")),
    reason="PLAUSIBLE_API_KEY and PLAUSIBLE_TEST_SITE not set",
)
def test_live_breakdown(monkeypatch) -> None:
    monkeypatch.chdir(PROJECT_ROOT)
    site = os.environ["PLAUSIBLE_TEST_SITE"]

    async def _run() -> str:
        async with MCPToolRegistry(_settings()) as registry:
            return await registry.call_tool(
                "get_full_breakdown", {"site_id": site, "property": "event:page", "date_range": "7d"}
            )

    result = json.loads(anyio.run(_run))
    assert "error" not in result
    assert result["count"] == len(result["results"])
