"""validate command: check a review plan without touching anything."""

from __future__ import annotations

import click
from rich.console import Console

from triage_core.errors import ValidationError
from triage_core.validator import validate_plan

console = Console()


@click.command("validate")
@click.argument("plan_path", type=click.Path(dir_okay=False))
@click.pass_context
def validate_cmd(ctx, plan_path: str):
    """Validate the review plan at PLAN_PATH and summarize it."""
    try:
        plan = validate_plan(plan_path)
    except ValidationError as e:
        console.print(f"[red]Invalid plan:[/red] {e}")
        ctx.exit(1)

    summary = plan.summary()
    console.print(f"[green]Valid[/green] plan for [bold]{summary['repo']}[/bold] (run {summary['run_id']})")
    decisions = ", ".join(f"{k}={v}" for k, v in sorted(summary["decisions"].items())) or "none"
    ops = ", ".join(f"{k}={v}" for k, v in sorted(summary["ops"].items())) or "none"
    console.print(f"  items:    {summary['items']} ({decisions})")
    console.print(f"  actions:  {summary['actions']} ({ops})")
    console.print(f"  commits:  {summary['commits']}")
    gates = summary["quality_gates_ok"]
    console.print(f"  gates ok: {'not recorded' if gates is None else gates}")
