"""gates command: run the quality gates for one worktree and record them in its plan."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from triage_core.errors import ValidationError
from triage_core.gates import persist_gate_results, run_gates

console = Console()


@click.command("gates")
@click.argument("worktree", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--plan", "plan_rel", default=None, help="Plan path relative to the worktree. Overrides config file.")
@click.pass_context
def gates_cmd(ctx, worktree: Path, plan_rel: str | None):
    """Run lint, tests and secret scan in WORKTREE and store the results in its plan.

    Exits non-zero when any gate failed.
    """
    config = ctx.obj["config"]
    plan_path = worktree / (plan_rel or config["plan_path"])

    try:
        report = run_gates(worktree, plan_path, config)
        persist_gate_results(plan_path, report)
    except ValidationError as e:
        raise click.ClickException(f"Invalid plan: {e}")

    table = Table(title=f"Quality Gates: {worktree}", show_header=True, header_style="bold cyan")
    table.add_column("Gate", width=8)
    table.add_column("Ran", width=5)
    table.add_column("Result", width=8)
    table.add_column("Output", max_width=70)
    for name, result in (("lint", report.lint), ("tests", report.tests), ("secrets", report.secrets)):
        verdict = "[green]ok[/green]" if result.ok else "[red]failed[/red]"
        last_line = result.output.strip().splitlines()[-1] if result.output.strip() else ""
        table.add_row(name, "yes" if result.ran else "no", verdict, last_line[:70])
    console.print(table)

    if not report.overall_ok:
        console.print(f"[red]Failed gates: {', '.join(report.failed_gates())}[/red]")
        ctx.exit(1)
