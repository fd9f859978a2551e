"""log command: display the dedup log of platform actions."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.table import Table

from triage_store.errors import StoreError

console = Console()


def _describe(canonical: str) -> tuple[str, str]:
    try:
        data = json.loads(canonical)
    except json.JSONDecodeError:
        return "?", canonical[:30]
    return str(data.get("op", "?")), str(data.get("target", "?"))


@click.command("log")
@click.option("--repo", default=None, help="Only show actions for this repository (owner/name).")
@click.option("--failed", "failed_only", is_flag=True, help="Only show failed attempts.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of entries to show.")
@click.pass_context
def log_cmd(ctx, repo: str | None, failed_only: bool, limit: int):
    """Show the most recent platform actions, newest first."""
    try:
        entries = ctx.obj["action_log"].entries(repo=repo)
    except StoreError as e:
        raise click.ClickException(f"State store failure: {e}")

    if failed_only:
        entries = [e for e in entries if not e.succeeded]
    if not entries:
        console.print("[yellow]No actions logged.[/yellow]")
        return

    entries = list(reversed(entries))[:limit]

    table = Table(title="Action Log", show_header=True, header_style="bold cyan")
    table.add_column("When", width=20)
    table.add_column("Repository", max_width=30)
    table.add_column("Op", width=8)
    table.add_column("Target", width=12)
    table.add_column("Result", width=8)
    table.add_column("Run", max_width=16)
    table.add_column("Detail", max_width=50)

    for entry in entries:
        op, target = _describe(entry.canonical)
        style = "green" if entry.succeeded else "red"
        detail = entry.identifier or entry.error or ""
        if entry.override:
            detail = f"[yellow]override[/yellow] {detail}".rstrip()
        table.add_row(
            entry.timestamp.replace("T", " ").rstrip("Z"),
            entry.repo,
            op,
            target,
            f"[{style}]{entry.result}[/{style}]",
            entry.run_id,
            detail,
        )
    console.print(table)
