"""status command: show repo outcomes recorded in the review state."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from triage_store.errors import StoreError

console = Console()

_OUTCOME_STYLE = {
    "completed": "green",
    "partial": "yellow",
    "failed": "red",
}


@click.command("status")
@click.option("--repo", default=None, help="Only show this repository (owner/name).")
@click.option("--run", "run_id", default=None, help="Only show repositories reviewed in this run.")
@click.pass_context
def status_cmd(ctx, repo: str | None, run_id: str | None):
    """Show the recorded outcome of every reviewed repository."""
    try:
        document = ctx.obj["state"].load()
    except StoreError as e:
        raise click.ClickException(f"State store failure: {e}")

    repos = {
        name: record
        for name, record in document["repos"].items()
        if (repo is None or name == repo) and (run_id is None or record.get("run_id") == run_id)
    }
    if not repos:
        console.print("[yellow]No repository outcomes recorded.[/yellow]")
        return

    table = Table(title="Review Status", show_header=True, header_style="bold cyan")
    table.add_column("Repository", style="bold", max_width=40)
    table.add_column("Outcome", width=10)
    table.add_column("Items OK", justify="right", width=9)
    table.add_column("Failed", justify="right", width=7)
    table.add_column("Duration", justify="right", width=9)
    table.add_column("Run", max_width=20)
    table.add_column("Last Review", width=20)

    for name in sorted(repos):
        record = repos[name]
        outcome = record.get("outcome", "")
        style = _OUTCOME_STYLE.get(outcome, "white")
        table.add_row(
            name,
            f"[{style}]{outcome}[/{style}]",
            str(record.get("items_ok", 0)),
            str(record.get("items_failed", 0)),
            f"{float(record.get('duration', 0)):.1f}s",
            record.get("run_id") or "",
            (record.get("last_review") or "").replace("T", " ").rstrip("Z"),
        )
    console.print(table)

    if run_id and run_id in document["runs"]:
        run = document["runs"][run_id]
        console.print(
            f"Run {run_id}: {run.get('repos_processed', 0)} repo(s), "
            f"{run.get('items_ok', 0)} item(s) ok, {run.get('items_failed', 0)} failed, "
            f"completed {run.get('completed_at', '?')}"
        )
