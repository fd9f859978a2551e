"""apply command: validate, gate, execute and record one or more review plans."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from triage_core.errors import ValidationError
from triage_core.executor import STATUS_DRY_RUN, ActionExecutor, ExecutionReport
from triage_core.gates import persist_gate_results, run_gates
from triage_core.gh.client import GithubClient
from triage_core.outcomes import OUTCOME_COMPLETED, summarize_outcome
from triage_core.validator import validate_plan
from triage_store.errors import StoreError

console = Console()
logger = logging.getLogger(__name__)

_STATUS_STYLE = {
    "executed": "green",
    "skipped": "dim",
    "failed": "red",
    STATUS_DRY_RUN: "yellow",
}


def _print_report(report: ExecutionReport) -> None:
    if report.blocked:
        console.print(
            f"[red]{report.repo}: quality gates failed, actions blocked. "
            "Re-run with --override-gates to apply anyway.[/red]"
        )
        return
    if not report.outcomes:
        console.print(f"[dim]{report.repo}: no pending actions.[/dim]")
        return

    title = f"Actions: {report.repo}" + (" (dry run)" if report.dry_run else "")
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Op", width=8)
    table.add_column("Target", width=12)
    table.add_column("Status", width=10)
    table.add_column("Detail", max_width=60)
    for outcome in report.outcomes:
        style = _STATUS_STYLE.get(outcome.status, "white")
        detail = outcome.identifier or ""
        if outcome.error:
            detail = f"{outcome.error}: {outcome.message}".rstrip(": ")
        table.add_row(
            outcome.action.op.value,
            str(outcome.action.target),
            f"[{style}]{outcome.status}[/{style}]",
            detail,
        )
    console.print(table)
    if report.overridden:
        console.print("[yellow]Quality gates failed; actions were dispatched under override.[/yellow]")


def _run_totals(document: dict, run_id: str) -> tuple[int, int, int]:
    repos = [r for r in document["repos"].values() if r.get("run_id") == run_id]
    return (
        len(repos),
        sum(int(r.get("items_ok", 0)) for r in repos),
        sum(int(r.get("items_failed", 0)) for r in repos),
    )


@click.command("apply")
@click.argument("worktrees", nargs=-1, required=True, type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--plan", "plan_rel", default=None, help="Plan path relative to each worktree. Overrides config file.")
@click.option("--dry-run", is_flag=True, help="Show what would be done without touching GitHub.")
@click.option("--override-gates", is_flag=True, help="Dispatch actions even if quality gates failed.")
@click.option("--skip-gates", is_flag=True, help="Use the gate results already recorded in the plan.")
@click.option("--force", is_flag=True, help="Re-apply repos already completed in the plan's run.")
@click.pass_context
def apply_cmd(
    ctx,
    worktrees: tuple[Path, ...],
    plan_rel: str | None,
    dry_run: bool,
    override_gates: bool,
    skip_gates: bool,
    force: bool,
):
    """Apply the review plan found in each WORKTREE.

    Every pending action is executed at most once per repository, even
    across interrupted or repeated runs. Exits non-zero if any repository
    did not complete cleanly.
    """
    from triage_cli.auth import resolve_github_token

    config = dict(ctx.obj["config"])
    if plan_rel:
        config["plan_path"] = plan_rel
    # Flags only switch modes on; the config file or environment may already have.
    if dry_run:
        config["dry_run"] = True
    if override_gates:
        config["gate_override"] = True
    dry_run = bool(config["dry_run"])
    state = ctx.obj["state"]
    action_log = ctx.obj["action_log"]

    token = resolve_github_token(config)
    if not token and not dry_run:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first, or use --dry-run."
        )

    failures = 0
    run_ids: set[str] = set()
    try:
        if not dry_run:
            state.init()

        for worktree in worktrees:
            plan_path = worktree / config["plan_path"]
            started = time.monotonic()

            try:
                plan = validate_plan(plan_path)
            except ValidationError as e:
                console.print(f"[red]{worktree}: invalid plan: {e}[/red]")
                failures += 1
                continue

            if not force and state.is_repo_complete(plan.repo, plan.run_id):
                console.print(f"[dim]{plan.repo}: already completed in run {plan.run_id}, skipping.[/dim]")
                continue

            executor = ActionExecutor(
                GithubClient(plan.repo, token),
                action_log,
                dry_run=dry_run,
                override=bool(config["gate_override"]),
            )
            try:
                if not skip_gates:
                    gate_report = run_gates(worktree, plan_path, config)
                    persist_gate_results(plan_path, gate_report)
                    if not gate_report.overall_ok:
                        failed_gates = ", ".join(gate_report.failed_gates())
                        console.print(f"[yellow]{plan.repo}: gate(s) failed: {failed_gates}[/yellow]")
                report = executor.execute(plan.repo, plan_path)
            except ValidationError as e:
                console.print(f"[red]{plan.repo}: invalid plan: {e}[/red]")
                failures += 1
                continue
            _print_report(report)

            if dry_run:
                continue

            record, items = summarize_outcome(plan, report, time.monotonic() - started)
            state.record_repo_review(record, items)
            run_ids.add(plan.run_id)
            if record.outcome != OUTCOME_COMPLETED:
                failures += 1
            console.print(f"{plan.repo}: [bold]{record.outcome}[/bold]")

        for run_id in sorted(run_ids):
            repos_processed, items_ok, items_failed = _run_totals(state.load(), run_id)
            state.record_run_completion(run_id, repos_processed, items_ok, items_failed)
    except StoreError as e:
        logger.error("State store failure: %s", e)
        raise click.ClickException(f"State store failure: {e}")

    if failures:
        ctx.exit(1)
