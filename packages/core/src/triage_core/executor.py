"""Action executor: apply a validated plan's pending actions exactly once.

For each action, in plan order:
  canonicalize → already in the dedup log? skip
               → dry-run? report what would happen, touch nothing
               → otherwise dispatch under the log lock and record the attempt

One failed action never stops the rest; partial completion is a valid end
state. Re-running the same plan resumes at the first action that has not
succeeded yet, because successes are in the dedup log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from triage_core.actions import ActionOp, PendingAction, canonicalize
from triage_core.errors import ActionError, InvalidPlan
from triage_core.gates import gates_passed
from triage_core.gh.client import HostingClient
from triage_core.validator import validate_plan
from triage_store.action_log import ActionLog
from triage_store.errors import StoreError

logger = logging.getLogger(__name__)

STATUS_EXECUTED = "executed"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"
STATUS_DRY_RUN = "dry-run"


@dataclass
class ActionOutcome:
    action: PendingAction
    canonical: str
    status: str
    error: str | None = None  # ActionError kind when status == "failed"
    message: str = ""
    identifier: str | None = None


@dataclass
class ExecutionReport:
    """What execute() did for one repo. ``ok`` is False if anything failed or was blocked."""

    repo: str
    run_id: str
    outcomes: list[ActionOutcome] = field(default_factory=list)
    gates_ok: bool = True
    blocked: bool = False
    overridden: bool = False
    dry_run: bool = False

    def _with_status(self, status: str) -> list[ActionOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def executed(self) -> list[ActionOutcome]:
        return self._with_status(STATUS_EXECUTED)

    @property
    def failed(self) -> list[ActionOutcome]:
        return self._with_status(STATUS_FAILED)

    @property
    def skipped(self) -> list[ActionOutcome]:
        return self._with_status(STATUS_SKIPPED)

    @property
    def ok(self) -> bool:
        return not self.blocked and not self.failed


class ActionExecutor:
    def __init__(
        self,
        client: HostingClient,
        action_log: ActionLog,
        dry_run: bool = False,
        override: bool = False,
    ):
        self.client = client
        self.action_log = action_log
        self.dry_run = dry_run
        self.override = override

    def execute(self, repo: str, plan_path: str | Path) -> ExecutionReport:
        """Execute the plan's pending actions for ``repo``.

        Raises InvalidPlan for a malformed plan or one that belongs to a
        different repo. Platform failures are reported per action, never
        raised.
        """
        plan = validate_plan(plan_path)
        if plan.repo != repo:
            raise InvalidPlan(f"Plan {plan_path} is for {plan.repo}, not {repo}")

        report = ExecutionReport(repo=repo, run_id=plan.run_id, dry_run=self.dry_run)
        report.gates_ok = gates_passed(plan)

        if not report.gates_ok:
            if self.override:
                report.overridden = True
                logger.warning("Quality gates failed for %s; dispatching anyway (override)", repo)
            elif not self.dry_run:
                report.blocked = bool(plan.actions)
                logger.warning(
                    "Quality gates failed for %s; refusing %d mutating action(s)", repo, len(plan.actions)
                )
                return report

        for action in plan.actions:
            report.outcomes.append(self._execute_one(repo, plan.run_id, action, report.overridden))

        logger.info(
            "%s: %d executed, %d skipped, %d failed",
            repo,
            len(report.executed),
            len(report.skipped),
            len(report.failed),
        )
        return report

    def _execute_one(self, repo: str, run_id: str, action: PendingAction, overridden: bool) -> ActionOutcome:
        canonical = canonicalize(action)

        if self.action_log.already_executed(repo, canonical):
            logger.info("Skipping %s on %s: already executed", action.describe(), repo)
            return ActionOutcome(action=action, canonical=canonical, status=STATUS_SKIPPED)

        if self.dry_run:
            logger.info("[dry-run] would %s on %s", action.describe(), repo)
            return ActionOutcome(action=action, canonical=canonical, status=STATUS_DRY_RUN)

        try:
            entry = self.action_log.execute_once(
                repo,
                run_id,
                canonical,
                lambda: self._dispatch(action),
                override=overridden,
                error_kind=lambda e: e.kind if isinstance(e, ActionError) else type(e).__name__,
            )
        except ActionError as e:
            logger.warning("%s on %s failed: %s", action.describe(), repo, e)
            return ActionOutcome(
                action=action,
                canonical=canonical,
                status=STATUS_FAILED,
                error=e.kind,
                message=e.message,
            )
        except StoreError:
            raise
        except Exception as e:
            # Already recorded as failed by execute_once; the remaining actions still run.
            logger.exception("%s on %s failed unexpectedly", action.describe(), repo)
            return ActionOutcome(
                action=action,
                canonical=canonical,
                status=STATUS_FAILED,
                error=type(e).__name__,
                message=str(e),
            )

        if entry is None:
            # Another invocation got there between our check and the lock.
            return ActionOutcome(action=action, canonical=canonical, status=STATUS_SKIPPED)
        return ActionOutcome(
            action=action,
            canonical=canonical,
            status=STATUS_EXECUTED,
            identifier=entry.identifier,
        )

    def _dispatch(self, action: PendingAction) -> str | None:
        kind, number = action.target.kind, action.target.number
        params = action.params

        if action.op is ActionOp.COMMENT:
            return self.client.comment(kind, number, params["body"])
        if action.op is ActionOp.CLOSE:
            return self.client.close(kind, number, reason=params.get("reason"), body=params.get("body"))
        if action.op is ActionOp.LABEL:
            return self.client.add_labels(kind, number, list(params["labels"]))
        if action.op is ActionOp.EDIT:
            return self.client.edit(kind, number, title=params.get("title"), body=params.get("body"))
        raise ActionError("invalid", f"Unsupported op {action.op!r}")
