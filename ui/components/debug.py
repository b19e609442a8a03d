"""`sitepulse debug`: toggle API debug logging in ``.env`` and manage log files."""

from __future__ import annotations

import argparse
import re
from pathlib import Path

from sitepulse.api_logger import clear_logs, count_log_files
from sitepulse.context import AppContext
from ui.components.render import console

ENV_FILE = Path(".env")

_API_DEBUG_RE = re.compile(r"^API_DEBUG\s*=.*$", re.MULTILINE)


def register(subparsers: argparse._SubParsersAction) -> None:
    debug_cmd = subparsers.add_parser("debug", help="Enable or disable API debug logging")
    mode = debug_cmd.add_mutually_exclusive_group()
    mode.add_argument("-e", "--enable", action="store_true", help="Enable API debug logging")
    mode.add_argument("-d", "--disable", action="store_true", help="Disable API debug logging")
    mode.add_argument("-c", "--clear", action="store_true", help="Clear all API debug logs")
    debug_cmd.set_defaults(handler=debug)


def set_api_debug(env_file: Path, enabled: bool) -> None:
    """Write ``API_DEBUG=true|false`` into *env_file*, replacing any existing line."""
    line = f"API_DEBUG={'true' if enabled else 'false'}"
    env_file = Path(env_file)
    content = env_file.read_text(encoding="utf-8") if env_file.exists() else ""

    if _API_DEBUG_RE.search(content):
        content = _API_DEBUG_RE.sub(line, content, count=1)
    elif enabled or content:
        if content and not content.endswith("\n"):
            content += "\n"
        content += f"{line}\n"
    else:
        return
    env_file.write_text(content, encoding="utf-8")


async def debug(context: AppContext, args: argparse.Namespace) -> None:
    log_dir = context.settings.api_log_dir

    if args.enable:
        set_api_debug(ENV_FILE, True)
        console.print(
            "[green]API debug logging enabled.[/green] "
            "Restart the application for changes to take effect."
        )
        console.print(f"Logs will be saved to: {log_dir.resolve()}")
        return

    if args.disable:
        set_api_debug(ENV_FILE, False)
        console.print(
            "[red]API debug logging disabled.[/red] "
            "Restart the application for changes to take effect."
        )
        return

    if args.clear:
        if clear_logs(log_dir):
            console.print("All API debug logs cleared.")
        else:
            console.print("No API debug logs found.")
        return

    enabled = context.settings.api_debug
    console.print("[bold]API Debug Status:[/bold]")
    console.print(f"   Status: {'[green]Enabled[/green]' if enabled else '[red]Disabled[/red]'}")
    console.print(f"   Log directory: {log_dir.resolve()}")
    console.print(f"   Log files: {count_log_files(log_dir)}")
    if enabled:
        console.print("   Use --disable to turn off API debug logging")
    else:
        console.print("   Use --enable to turn on API debug logging")
