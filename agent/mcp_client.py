"""MCP Tool Discovery and Execution Client.

Spawns the Plausible MCP server over stdio, discovers its tools,
converts them to LangChain-compatible tools, and executes tool calls.
"""

from __future__ import annotations

import json
import logging
import os
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Optional

from langchain_core.tools import StructuredTool
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from pydantic import BaseModel, Field, create_model

from sitepulse.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class ToolInfo:
    """Metadata about a discovered MCP tool."""

    name: str
    description: str
    input_schema: dict[str, Any]


class MCPToolRegistry:
    """Holds one stdio session to the tool server for its lifetime.

    Use as ``async with MCPToolRegistry(settings) as registry: ...``.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None
        self._tools: dict[str, ToolInfo] = {}
        self._langchain_tools: list[StructuredTool] = []

    @property
    def tools(self) -> dict[str, ToolInfo]:
        """All discovered tools keyed by name."""
        return dict(self._tools)

    @property
    def langchain_tools(self) -> list[StructuredTool]:
        """All tools as LangChain StructuredTool instances."""
        return list(self._langchain_tools)

    def server_parameters(self) -> StdioServerParameters:
        # The server resolves its own credentials, so it needs our environment.
        return StdioServerParameters(
            command=self.settings.server_command,
            args=list(self.settings.mcp_server_args),
            env=dict(os.environ),
        )

    async def __aenter__(self) -> "MCPToolRegistry":
        stack = AsyncExitStack()
        try:
            read, write = await stack.enter_async_context(
                stdio_client(self.server_parameters())
            )
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack
        self._session = session
        await self.discover_tools()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self._session = None

    async def discover_tools(self) -> None:
        """List the server's tools and rebuild the LangChain wrappers."""
        if self._session is None:
            raise RuntimeError("MCPToolRegistry is not connected")

        result = await self._session.list_tools()
        self._tools = {
            tool.name: ToolInfo(
                name=tool.name,
                description=tool.description or "",
                input_schema=tool.inputSchema,
            )
            for tool in result.tools
        }
        self._langchain_tools = [self._to_langchain_tool(t) for t in self._tools.values()]
        logger.info("Discovered %d tools: %s", len(self._tools), sorted(self._tools))

    async def call_tool(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """Execute a tool and return its text result.

        Tool-side failures come back as ``{"error": ...}`` JSON so the model
        can read them; they are never raised.
        """
        if tool_name not in self._tools:
            return json.dumps({"error": f"Unknown tool: {tool_name}"})
        if self._session is None:
            return json.dumps({"error": "Tool server is not connected"})

        # Drop unset optionals so server-side defaults apply.
        arguments = {k: v for k, v in arguments.items() if v is not None}
        start = time.perf_counter()
        try:
            result = await self._session.call_tool(tool_name, arguments)
        except Exception as e:
            logger.error("Error calling tool %s: %s", tool_name, e)
            return json.dumps({"error": f"Tool execution failed: {e}"})

        texts = [block.text for block in result.content if hasattr(block, "text")]
        response = "\n".join(texts) if texts else "{}"
        latency_ms = (time.perf_counter() - start) * 1000

        if result.isError:
            logger.warning("Tool %s returned an error after %.0fms", tool_name, latency_ms)
            return json.dumps({"error": response})

        logger.info("Tool %s completed in %.0fms", tool_name, latency_ms)
        return response

    def _to_langchain_tool(self, tool_info: ToolInfo) -> StructuredTool:
        """Convert an MCP ToolInfo to a LangChain StructuredTool."""
        args_model = _json_schema_to_pydantic(tool_info.input_schema, tool_info.name)

        registry = self
        name = tool_info.name

        async def _invoke(**kwargs: Any) -> str:
            return await registry.call_tool(name, kwargs)

        return StructuredTool.from_function(
            func=None,
            coroutine=_invoke,
            name=tool_info.name,
            description=tool_info.description or "No description",
            args_schema=args_model,
        )


# ---------------------------------------------------------------------------
# JSON Schema -> Pydantic model conversion
# ---------------------------------------------------------------------------


def _json_schema_to_pydantic(schema: dict[str, Any], tool_name: str) -> type[BaseModel]:
    """Convert a JSON Schema (from MCP tool) to a Pydantic model."""
    properties = schema.get("properties", {})
    required = set(schema.get("required", []))

    if not properties:
        return create_model(f"{tool_name}_Args")

    fields: dict[str, Any] = {}
    for prop_name, prop_def in properties.items():
        python_type = _resolve_type(prop_def)
        desc = prop_def.get("description", "")

        if prop_name in required:
            fields[prop_name] = (python_type, Field(description=desc))
        else:
            fields[prop_name] = (
                Optional[python_type],
                Field(default=prop_def.get("default"), description=desc),
            )

    return create_model(f"{tool_name}_Args", **fields)


def _resolve_type(prop_def: dict[str, Any]) -> Any:
    """Resolve the Python type from a JSON Schema property definition.

    ``anyOf`` is Pydantic's encoding for unions and ``X | None``; a union of
    several non-null types resolves to ``Any`` so the server validates it.
    """
    if "anyOf" in prop_def:
        non_null = [p for p in prop_def["anyOf"] if p.get("type") != "null"]
        if len(non_null) == 1:
            return _map_json_type(non_null[0])
        return Any if non_null else str

    return _map_json_type(prop_def)


_SCALARS: dict[str, type] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "object": dict,
}


def _map_json_type(prop_def: dict[str, Any]) -> Any:
    """Map a JSON Schema type to a Python type, keeping list item types."""
    json_type = prop_def.get("type", "string")
    if json_type == "array":
        items = prop_def.get("items")
        if isinstance(items, dict) and items:
            return list[_resolve_type(items)]
        return list
    return _SCALARS.get(json_type, str)
