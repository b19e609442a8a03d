"""SitePulse command line: Plausible stats, Vercel deployments and analytics chat.

Run with:
    sitepulse plausible stats -s example.com -p 30d
    sitepulse vercel logs -p my-project
    sitepulse chat
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError
from rich.markup import escape

from sitepulse.config import Settings
from sitepulse.context import AppContext
from sitepulse.errors import SitePulseError
from sitepulse.instrumentation import write_metrics
from ui.components import chat, debug, plausible, render, vercel

logger = logging.getLogger("sitepulse.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitepulse",
        description="Plausible analytics and Vercel deployment status from the terminal.",
    )
    parser.add_argument(
        "--metrics-file",
        type=Path,
        metavar="PATH",
        help="Write Prometheus metrics for this run to PATH when the command finishes",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Log INFO messages to stderr"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    for component in (plausible, vercel, debug, chat):
        component.register(subparsers)
    return parser


def main(argv: Optional[Sequence[str]] = None, context: Optional[AppContext] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stderr,
    )

    context = context or AppContext(Settings())
    try:
        asyncio.run(args.handler(context, args))
    except (SitePulseError, ValidationError) as exc:
        render.console.print(f"[red]Error:[/red] {escape(str(exc))}")
        return 1
    except KeyboardInterrupt:
        render.console.print("\nInterrupted")
        return 130
    finally:
        if args.metrics_file:
            try:
                write_metrics(args.metrics_file)
                logger.info("Metrics written to %s", args.metrics_file)
            except OSError as exc:
                logger.warning("Could not write metrics to %s: %s", args.metrics_file, exc)
    return 0


if __name__ == "__main__":
    sys.exit(main())
