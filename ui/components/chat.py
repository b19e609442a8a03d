"""`sitepulse chat`: terminal conversation with the analytics agent."""

from __future__ import annotations

import argparse
import asyncio
import uuid

from rich.markup import escape

from agent.agent import AnalyticsAgent
from agent.mcp_client import MCPToolRegistry
from sitepulse.context import AppContext
from ui.components.render import console

EXIT_COMMANDS = frozenset({"exit", "quit"})


def register(subparsers: argparse._SubParsersAction) -> None:
    chat_cmd = subparsers.add_parser("chat", help="Chat with your Plausible analytics")
    chat_cmd.set_defaults(handler=chat)


async def _prompt() -> str | None:
    try:
        return await asyncio.to_thread(console.input, "\n[bold]You:[/bold] ")
    except EOFError:
        return None


async def chat(context: AppContext, args: argparse.Namespace) -> None:
    session_id = str(uuid.uuid4())
    console.print("[blue]Starting analytics tool server...[/blue]")

    async with MCPToolRegistry(context.settings) as registry:
        agent = AnalyticsAgent(context.settings, registry)
        console.print("Welcome to the Plausible Analytics Chat Interface!")
        console.print(f"[dim]Tools: {', '.join(sorted(registry.tools))}[/dim]")
        console.print('Type "exit" to quit.')

        while True:
            message = await _prompt()
            if message is None or message.strip().lower() in EXIT_COMMANDS:
                console.print("Goodbye!")
                break
            if not message.strip():
                continue

            with console.status("[bold blue]Thinking..."):
                result = await agent.chat(message, session_id)

            console.print(f"\n[bold green]Assistant:[/bold green] {escape(result.response)}")
            if result.tools_used:
                console.print(
                    f"[dim]tools: {', '.join(result.tools_used)} | {result.latency_ms:.0f}ms[/dim]"
                )
