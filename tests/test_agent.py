"""Tests for MCP tool discovery, JSON Schema conversion and the chat agent."""

import json
import os
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage
from mcp.shared.memory import create_connected_server_and_client_session
from mcp.types import CallToolResult, TextContent

from agent.agent import MAX_HISTORY, AnalyticsAgent
from agent.mcp_client import MCPToolRegistry, ToolInfo, _json_schema_to_pydantic, _resolve_type
from mcp_servers.plausible.server import mcp

SERVER_MODULE = "mcp_servers.plausible.server"

# ---------------------------------------------------------------------------
# JSON Schema -> Pydantic
# ---------------------------------------------------------------------------


class TestSchemaConversion:
    def test_required_and_optional(self) -> None:
        model = _json_schema_to_pydantic(
            {
                "properties": {
                    "site_id": {"type": "string", "description": "Domain"},
                    "limit": {"type": "integer", "default": 10},
                },
                "required": ["site_id"],
            },
            "demo",
        )
        fields = model.model_fields
        assert fields["site_id"].is_required()
        assert fields["site_id"].description == "Domain"
        assert not fields["limit"].is_required()
        assert model(site_id="a.com").limit == 10

    def test_array_item_type_kept(self) -> None:
        assert _resolve_type({"type": "array", "items": {"type": "string"}}) == list[str]

    def test_nullable_union(self) -> None:
        schema = {"anyOf": [{"type": "array", "items": {"type": "string"}}, {"type": "null"}]}
        assert _resolve_type(schema) == list[str]

    def test_multi_type_union_is_any(self) -> None:
        schema = {"anyOf": [{"type": "string"}, {"type": "object"}, {"type": "null"}]}
        assert _resolve_type(schema) is Any

    def test_no_properties(self) -> None:
        assert _json_schema_to_pydantic({}, "empty").model_fields == {}


# ---------------------------------------------------------------------------
# MCPToolRegistry
# ---------------------------------------------------------------------------


class TestToolRegistry:
    def test_server_parameters_pass_environment(self, settings) -> None:
        with patch.dict(os.environ, {"PLAUSIBLE_API_KEY": "k"}):
            params = MCPToolRegistry(settings).server_parameters()
        assert params.args == ["-m", "mcp_servers.plausible.server"]
        assert params.env["PLAUSIBLE_API_KEY"] == "k"

    @pytest.mark.asyncio
    async def test_discovers_server_tools(self, settings) -> None:
        registry = MCPToolRegistry(settings)
        async with create_connected_server_and_client_session(mcp._mcp_server) as client:
            registry._session = client
            await registry.discover_tools()

        assert "get_breakdown" in registry.tools
        by_name = {t.name: t for t in registry.langchain_tools}
        fields = by_name["get_breakdown"].args_schema.model_fields
        assert fields["site_id"].is_required()
        assert not fields["metrics"].is_required()

    @pytest.mark.asyncio
    async def test_call_tool_over_session(self, settings, make_context) -> None:
        registry = MCPToolRegistry(settings)
        ctx = make_context(
            lambda r: httpx.Response(200, json={"sites": [{"domain": "example.com"}]})
        )
        with patch(f"{SERVER_MODULE}.context", ctx):
            async with create_connected_server_and_client_session(mcp._mcp_server) as client:
                registry._session = client
                await registry.discover_tools()
                text = await registry.call_tool("list_sites", {})
                bad = await registry.call_tool("get_breakdown", {"site_id": "x", "metrics": ["nope"]})

        assert json.loads(text)["count"] == 1
        assert "Unknown metric" in json.loads(bad)["error"]

    @pytest.mark.asyncio
    async def test_call_tool_drops_none_arguments(self, settings) -> None:
        registry = MCPToolRegistry(settings)
        registry._tools = {"get_breakdown": ToolInfo("get_breakdown", "", {})}
        registry._session = AsyncMock()
        registry._session.call_tool.return_value = CallToolResult(
            content=[TextContent(type="text", text='{"ok": true}')]
        )

        result = await registry.call_tool("get_breakdown", {"site_id": "a.com", "limit": None})

        assert result == '{"ok": true}'
        registry._session.call_tool.assert_awaited_once_with("get_breakdown", {"site_id": "a.com"})

    @pytest.mark.asyncio
    async def test_unknown_tool(self, settings) -> None:
        result = await MCPToolRegistry(settings).call_tool("nope", {})
        assert "Unknown tool" in json.loads(result)["error"]


# ---------------------------------------------------------------------------
# AnalyticsAgent
# ---------------------------------------------------------------------------


def _fake_graph(messages: list, captured: Optional[list] = None) -> MagicMock:
    graph = MagicMock()

    async def _ainvoke(state: dict) -> dict:
        if captured is not None:
            captured.append(state["messages"])
        return {"messages": [*state["messages"], *messages]}

    graph.ainvoke = _ainvoke
    return graph


class TestAnalyticsAgent:
    @pytest.mark.asyncio
    async def test_tools_and_think_blocks(self, settings) -> None:
        registry = MagicMock(langchain_tools=[])
        reply = [
            AIMessage(content="", tool_calls=[{"name": "list_sites", "args": {}, "id": "1"}]),
            ToolMessage(content='{"count": 1}', tool_call_id="1"),
            AIMessage(content="<think>count the sites</think>\nYou have one site."),
        ]
        captured: list = []
        with patch("agent.agent.ChatOllama"), patch(
            "agent.agent.create_react_agent", return_value=_fake_graph(reply, captured)
        ):
            result = await AnalyticsAgent(settings, registry).chat("How many sites?", "s1")

        assert result.response == "You have one site."
        assert result.tools_used == ["list_sites"]
        system = captured[0][0]
        assert isinstance(system, SystemMessage)
        assert "Today's date is" in system.content

    @pytest.mark.asyncio
    async def test_history_is_bounded(self, settings) -> None:
        agent = AnalyticsAgent(settings, MagicMock(langchain_tools=[]))
        with patch("agent.agent.ChatOllama"), patch(
            "agent.agent.create_react_agent",
            return_value=_fake_graph([AIMessage(content="ok")]),
        ):
            for i in range(MAX_HISTORY + 3):
                await agent.chat(f"question {i}", "s1")

        history = agent.history("s1")
        assert len(history) == MAX_HISTORY * 2
        assert isinstance(history[0], HumanMessage)
        assert history[0].content == "question 3"

    @pytest.mark.asyncio
    async def test_invocation_failure_is_reported(self, settings) -> None:
        graph = MagicMock()
        graph.ainvoke = AsyncMock(side_effect=RuntimeError("ollama is down"))
        with patch("agent.agent.ChatOllama"), patch(
            "agent.agent.create_react_agent", return_value=graph
        ):
            result = await AnalyticsAgent(settings, MagicMock(langchain_tools=[])).chat("hi", "s1")

        assert "ollama is down" in result.response
        assert result.tools_used == []
