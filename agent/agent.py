"""LangChain Agent with Plausible MCP tool integration.

Uses ChatOllama with tool calling, conversation memory,
and multi-step tool chain support via LangGraph's ReAct agent.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import date

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from langchain_ollama import ChatOllama
from langgraph.prebuilt import create_react_agent

from agent.mcp_client import MCPToolRegistry
from sitepulse.config import Settings

logger = logging.getLogger(__name__)

MAX_HISTORY = 10  # message pairs per session (user + assistant = 2 entries)

# Regex to strip Qwen3 thinking blocks: <think>...</think>
_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)

SYSTEM_PROMPT = """\
You are a helpful web analytics assistant with access to Plausible Analytics tools.
Today's date is {today}.
Use list_sites when the user does not name a site. Prefer get_breakdown with
date_range tokens like 7d, 30d, month, last_month or 6mo, or an explicit
'YYYY-MM-DD,YYYY-MM-DD' range. Answer with the numbers the tools return;
never invent figures.
"""


@dataclass
class AgentResponse:
    """Result of an agent chat invocation."""

    response: str
    tools_used: list[str]
    latency_ms: float


class AnalyticsAgent:
    """Orchestrates LLM reasoning and Plausible MCP tool calls."""

    def __init__(self, settings: Settings, registry: MCPToolRegistry) -> None:
        self.settings = settings
        self.registry = registry
        self._sessions: dict[str, list] = {}

    def history(self, session_id: str) -> list:
        return list(self._sessions.get(session_id, []))

    async def chat(self, message: str, session_id: str) -> AgentResponse:
        """Process a user message and return the agent's response."""
        start = time.perf_counter()
        history = self._sessions.get(session_id, [])

        model = ChatOllama(
            model=self.settings.ollama_model,
            base_url=self.settings.ollama_base_url,
        )
        agent = create_react_agent(model, self.registry.langchain_tools)

        system = SystemMessage(content=SYSTEM_PROMPT.format(today=date.today().isoformat()))
        input_messages = [system, *history, HumanMessage(content=message)]

        try:
            result = await agent.ainvoke({"messages": input_messages})
        except Exception as e:
            logger.error("Agent invocation failed: %s", e)
            latency_ms = (time.perf_counter() - start) * 1000
            return AgentResponse(
                response=f"Sorry, I encountered an error: {e}",
                tools_used=[],
                latency_ms=round(latency_ms, 1),
            )

        output_messages = result["messages"]
        tools_used: list[str] = []
        for msg in output_messages:
            if isinstance(msg, AIMessage) and msg.tool_calls:
                tools_used.extend(tc["name"] for tc in msg.tool_calls)

        # The last AI message with content is the final answer
        response_text = ""
        for msg in reversed(output_messages):
            if isinstance(msg, AIMessage) and msg.content:
                response_text = msg.content
                break

        response_text = _THINK_RE.sub("", response_text).strip()
        if not response_text:
            response_text = "I couldn't generate a response."

        history.append(HumanMessage(content=message))
        history.append(AIMessage(content=response_text))
        self._sessions[session_id] = history[-(MAX_HISTORY * 2) :]

        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Chat session=%s tools=%s latency=%.0fms",
            session_id,
            tools_used,
            latency_ms,
        )
        return AgentResponse(
            response=response_text,
            tools_used=tools_used,
            latency_ms=round(latency_ms, 1),
        )
