"""`sitepulse vercel ...` commands: projects, deployments and build logs."""

from __future__ import annotations

import argparse
import json
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from rich.markup import escape

from sitepulse.context import AppContext
from sitepulse.models import VercelDeployment, VercelLog
from sitepulse.vercel_client import deployment_state, is_successful, select_active_deployment
from ui.components.render import (
    console,
    format_timestamp,
    make_table,
    muted,
    status_text,
    write_json,
)

# Rendered first, in this order; any other type follows in order of appearance.
LOG_TYPE_ORDER = ("error", "deployment-state", "stdout")

_GROUP_HEADINGS = {
    "error": "[bold red]ERRORS:[/bold red]",
    "deployment-state": "[bold blue]DEPLOYMENT STATES:[/bold blue]",
    "stdout": "[bold green]STANDARD OUTPUT:[/bold green]",
}


def register(subparsers: argparse._SubParsersAction) -> None:
    vercel = subparsers.add_parser("vercel", help="Vercel project management commands")
    commands = vercel.add_subparsers(dest="action", required=True)

    projects_cmd = commands.add_parser(
        "projects", help="List all Vercel projects with deployment status"
    )
    projects_cmd.add_argument("-j", "--json", type=Path, metavar="FILE", help="Export to JSON file")
    projects_cmd.add_argument(
        "-v", "--verbose", action="store_true", help="Show more details including URLs"
    )
    projects_cmd.add_argument(
        "-d", "--debug", action="store_true", help="Print the raw structure of the first project"
    )
    projects_cmd.set_defaults(handler=projects)

    deployments_cmd = commands.add_parser("deployments", help="List deployments for a project")
    deployments_cmd.add_argument("-p", "--project", required=True, help="Project ID or name")
    deployments_cmd.add_argument(
        "-l", "--limit", type=int, default=10, help="Number of deployments to show"
    )
    deployments_cmd.add_argument("-j", "--json", type=Path, metavar="FILE", help="Export to JSON file")
    deployments_cmd.add_argument(
        "-s", "--success-only", action="store_true", help="Show only successful deployments"
    )
    deployments_cmd.set_defaults(handler=deployments)

    logs_cmd = commands.add_parser(
        "logs", help="Show logs for a deployment or the active deployment of a project"
    )
    target = logs_cmd.add_mutually_exclusive_group(required=True)
    target.add_argument("-d", "--deployment", help="Deployment ID")
    target.add_argument("-p", "--project", help="Project ID or name")
    logs_cmd.add_argument("-j", "--json", type=Path, metavar="FILE", help="Export to JSON file")
    logs_cmd.add_argument(
        "-f", "--filter", help="Only show logs of this type (error, stdout, deployment-state, ...)"
    )
    logs_cmd.add_argument(
        "-l", "--limit", type=int, default=100, help="Limit the number of logs shown"
    )
    logs_cmd.set_defaults(handler=logs)


def _created(deployment: VercelDeployment) -> str:
    return format_timestamp(deployment.created or deployment.created_at)


# ---------------------------------------------------------------------------
# projects
# ---------------------------------------------------------------------------


async def projects(context: AppContext, args: argparse.Namespace) -> None:
    console.print("[blue]Fetching Vercel projects (this may take a moment)...[/blue]")
    async with context.vercel_client() as client:
        project_list = await client.get_projects()

    if args.debug and project_list:
        first = project_list[0]
        console.print("\nProject structure (first project):")
        console.print_json(first.model_dump_json(by_alias=True))
        if first.latest_deployments:
            console.print("\nLatest deployment structure:")
            console.print_json(first.latest_deployments[0].model_dump_json(by_alias=True))

    if args.json:
        write_json(args.json, project_list)

    columns = ["Project Name", "Latest Deploy Status", "Last Successful", "Framework", "Project ID"]
    if args.verbose:
        columns += ["URL", "Deploy ID"]
    table = make_table("Vercel Projects", columns)

    for index, project in enumerate(project_list, start=1):
        latest = project.latest_deployments[0] if project.latest_deployments else None
        last_ok = next((d for d in project.latest_deployments if is_successful(d)), None)
        row = [
            str(index),
            escape(project.name),
            status_text(deployment_state(latest)) if latest else muted("No Deployments"),
            _created(last_ok) if last_ok else muted("Never"),
            project.framework or muted("Unknown"),
            project.id,
        ]
        if args.verbose:
            row += [
                (latest.url if latest and latest.url else muted("N/A")),
                (latest.id if latest and latest.id else muted("N/A")),
            ]
        table.add_row(*row)

    console.print(table)
    console.print(f"\nTotal projects: {len(project_list)}")
    console.print(
        "[yellow]\nTip: Use `sitepulse vercel deployments -p <project-id>` to see all "
        "deployments for a project[/yellow]"
    )
    console.print(
        "[yellow]Tip: Use `sitepulse vercel logs -p <project-id>` to see logs for the "
        "active deployment of a project[/yellow]"
    )


# ---------------------------------------------------------------------------
# deployments
# ---------------------------------------------------------------------------


async def deployments(context: AppContext, args: argparse.Namespace) -> None:
    async with context.vercel_client() as client:
        project = await client.resolve_project(args.project)
        found = await client.get_deployments(project.id, args.limit)

    shown = [d for d in found if is_successful(d)] if args.success_only else found

    if args.json:
        write_json(args.json, shown)

    suffix = " (successful only)" if args.success_only else ""
    table = make_table(
        f"Deployments for {escape(project.name)}{suffix}",
        ["Deployment ID", "Status", "Created", "URL", "Target"],
    )
    for index, d in enumerate(shown, start=1):
        table.add_row(
            str(index),
            d.id,
            status_text(deployment_state(d)),
            _created(d),
            d.url or muted("N/A"),
            d.target or muted("N/A"),
        )
    console.print(table)

    if not shown:
        console.print("[yellow]No deployments found matching the criteria[/yellow]")
    else:
        console.print(f"[dim]\nShowing {len(shown)} of {len(found)} deployments[/dim]")


# ---------------------------------------------------------------------------
# logs
# ---------------------------------------------------------------------------


def _sort_key(log: VercelLog) -> float:
    value = log.created
    if value is None:
        return 0.0
    if isinstance(value, (int, float)) or str(value).isdigit():
        return float(value)
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp() * 1000
    except ValueError:
        return 0.0


def select_logs(logs: Sequence[VercelLog], log_type: str | None, limit: int | None) -> list[VercelLog]:
    """Filter by type, keep the newest *limit* entries, return them oldest first."""
    selected = [log for log in logs if log_type is None or log.type == log_type]
    selected.sort(key=_sort_key, reverse=True)
    if limit and limit > 0:
        selected = selected[:limit]
    selected.reverse()
    return selected


def group_logs(logs: Sequence[VercelLog]) -> list[tuple[str, list[VercelLog]]]:
    """Group by type: errors, deployment states and stdout first, then the rest."""
    groups: dict[str, list[VercelLog]] = {}
    for log in logs:
        groups.setdefault(log.type, []).append(log)

    ordered = [(t, groups[t]) for t in LOG_TYPE_ORDER if t in groups]
    ordered += [(t, entries) for t, entries in groups.items() if t not in LOG_TYPE_ORDER]
    return ordered


def _log_line(log: VercelLog) -> str:
    stamp = f"[dim]{format_timestamp(log.created)}[/dim]"
    payload = log.payload
    if log.type == "error":
        error = payload.get("error") or {}
        message = escape(str(error.get("message") or "Unknown error"))
        stack = f"\n{escape(str(error['stack']))}" if error.get("stack") else ""
        return f"{stamp} [red]{message}[/red]{stack}"
    if log.type == "deployment-state":
        return f"{stamp} [yellow]State: {escape(str(payload.get('state') or 'unknown'))}[/yellow]"
    if log.type == "stdout":
        return f"{stamp} {escape(str(payload.get('text') or ''))}"
    return f"{stamp} {escape(json.dumps(payload, indent=2, default=str))}"


async def logs(context: AppContext, args: argparse.Namespace) -> None:
    project_name = ""
    async with context.vercel_client() as client:
        deployment_id = args.deployment
        if not deployment_id:
            project = await client.resolve_project(args.project)
            project_name = project.name
            active = select_active_deployment(await client.get_deployments(project.id, 10))
            if active is None:
                console.print(f"[red]No deployments found for project: {escape(project.name)}[/red]")
                return
            deployment_id = active.id
            console.print(
                f"[blue]Using active deployment ({deployment_id}) from project: "
                f"{escape(project.name)}[/blue]"
            )

        all_logs = await client.get_deployment_logs(deployment_id)

    if args.json:
        write_json(args.json, all_logs)

    if project_name:
        header = (
            f"Logs for project [green]{escape(project_name)}[/green] "
            f"(deployment: [yellow]{deployment_id}[/yellow]):"
        )
    else:
        header = f"Logs for deployment [yellow]{deployment_id}[/yellow]:"
    console.print(f"\n[bold]{header}[/bold]")
    console.print("-" * 50)

    shown = select_logs(all_logs, args.filter, args.limit)
    for log_type, entries in group_logs(shown):
        heading = _GROUP_HEADINGS.get(log_type, f"[bold blue]{escape(log_type.upper())}:[/bold blue]")
        console.print(f"\n{heading}")
        for entry in entries:
            console.print(_log_line(entry), highlight=False)

    if not shown:
        console.print("[yellow]No logs found matching the specified criteria[/yellow]")
    else:
        console.print(f"[dim]\nShowing {len(shown)} logs of {len(all_logs)} total[/dim]")
