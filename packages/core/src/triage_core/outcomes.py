"""Turn an ExecutionReport into the records kept in the review state."""

from __future__ import annotations

from triage_core.executor import ExecutionReport
from triage_core.plan import ReviewPlan
from triage_store.models import ItemOutcome, RepoOutcome

OUTCOME_COMPLETED = "completed"
OUTCOME_PARTIAL = "partial"
OUTCOME_FAILED = "failed"


def repo_outcome(report: ExecutionReport) -> str:
    if report.blocked:
        return OUTCOME_FAILED
    failed = report.failed
    if not failed:
        return OUTCOME_COMPLETED
    if len(failed) == len(report.outcomes):
        return OUTCOME_FAILED
    return OUTCOME_PARTIAL


def summarize_outcome(
    plan: ReviewPlan, report: ExecutionReport, duration: float
) -> tuple[RepoOutcome, list[ItemOutcome]]:
    """Derive per-item outcomes and the repo outcome for one applied plan.

    An item keeps its triage decision as its outcome unless one of its
    actions failed (or was blocked by the quality gates), in which case it
    is recorded as "failed" with the reason in its notes.
    """
    failures: dict[str, list[str]] = {}
    for outcome in report.failed:
        failures.setdefault(str(outcome.action.target), []).append(
            f"{outcome.action.op.value} failed: {outcome.error}"
        )

    items: list[ItemOutcome] = []
    items_failed = 0
    for item in plan.items:
        notes = list(failures.get(str(item.target), []))
        if report.blocked and plan.actions_for(item):
            notes.append("blocked by quality gates")
        if notes:
            items_failed += 1
            note_text = "; ".join(([item.summary] if item.summary else []) + notes)
            items.append(ItemOutcome(item_type=item.type, number=item.number, outcome=OUTCOME_FAILED, notes=note_text))
        else:
            items.append(ItemOutcome(item_type=item.type, number=item.number, outcome=item.decision, notes=item.summary))

    record = RepoOutcome(
        repo=plan.repo,
        outcome=repo_outcome(report),
        duration=round(duration, 2),
        items_ok=len(plan.items) - items_failed,
        items_failed=items_failed,
        run_id=plan.run_id,
    )
    return record, items
