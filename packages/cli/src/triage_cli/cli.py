"""CLI entry point for triage.

Commands:
  apply     validate, gate and execute review plans, then record outcomes
  validate  check a review plan without touching anything
  gates     run the quality gates for a worktree and store the results in its plan
  status    show recorded repo outcomes from the review state
  log       show the dedup log of executed platform actions
"""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from triage_cli.commands.apply import apply_cmd
from triage_cli.commands.gates import gates_cmd
from triage_cli.commands.log import log_cmd
from triage_cli.commands.status import status_cmd
from triage_cli.commands.validate import validate_cmd

console = Console()


def _build_stores(config: dict):
    """Instantiate the review state store and the action log from config.

    Both live under the same state directory but have separate lock scopes.
    This factory lives in cli.py so neither triage_core nor triage_store
    knows about the CLI config format.
    """
    from triage_store.action_log import ActionLog
    from triage_store.state import ReviewStateStore

    state_dir = config["state_dir"]
    timeout = config["lock_timeout"]
    return ReviewStateStore(state_dir, lock_timeout=timeout), ActionLog(state_dir, lock_timeout=timeout)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@click.group()
@click.version_option(package_name="repotriage", prog_name="triage")
@click.option(
    "--config",
    "config_path",
    default=".triage.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="TRIAGE_CONFIG",
)
@click.option("--state-dir", default=None, help="Directory holding review state and the action log.")
@click.option("--lock-timeout", type=float, default=None, help="Seconds to wait for a state lock.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, state_dir: str | None, lock_timeout: float | None, verbose: bool):
    """Apply triage plans to GitHub repositories, exactly once."""
    from triage_core.config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path, cli_overrides={"state_dir": state_dir, "lock_timeout": lock_timeout})
    except ValueError as e:
        raise click.UsageError(str(e))

    state, action_log = _build_stores(config)
    ctx.obj["config"] = config
    ctx.obj["state"] = state
    ctx.obj["action_log"] = action_log


main.add_command(apply_cmd)
main.add_command(validate_cmd)
main.add_command(gates_cmd)
main.add_command(status_cmd)
main.add_command(log_cmd)
