"""Review plan data model.

A plan is produced once per repo per run by the planning step and is an
audit record from then on: the gate pipeline adds its results to the
``git`` block, nothing else ever rewrites it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from triage_core.actions import PendingAction, Target

SUPPORTED_SCHEMA_VERSIONS = frozenset({"1"})
GATE_KEYS = ("lint", "tests", "secrets")


@dataclass(frozen=True)
class ReviewItem:
    """One triaged issue or PR."""

    type: str  # "issue" | "pr"
    number: int
    decision: str  # "fix" | "skip" | "needs-info" | ...
    summary: str = ""

    @property
    def target(self) -> Target:
        return Target(kind=self.type, number=self.number)


@dataclass
class ReviewPlan:
    schema_version: str
    repo: str
    run_id: str
    items: list[ReviewItem] = field(default_factory=list)
    actions: list[PendingAction] = field(default_factory=list)
    git: dict[str, Any] = field(default_factory=dict)
    path: Path | None = None

    def item_for(self, target: Target) -> ReviewItem | None:
        for item in self.items:
            if item.target == target:
                return item
        return None

    def actions_for(self, item: ReviewItem) -> list[PendingAction]:
        return [a for a in self.actions if a.target == item.target]

    def summary(self) -> dict[str, Any]:
        """Counts used by the CLI to describe a plan at a glance."""
        decisions: dict[str, int] = {}
        for item in self.items:
            decisions[item.decision] = decisions.get(item.decision, 0) + 1
        ops: dict[str, int] = {}
        for action in self.actions:
            ops[action.op.value] = ops.get(action.op.value, 0) + 1
        return {
            "repo": self.repo,
            "run_id": self.run_id,
            "items": len(self.items),
            "decisions": decisions,
            "actions": len(self.actions),
            "ops": ops,
            "commits": len(self.git.get("commits") or []),
            "quality_gates_ok": self.git.get("quality_gates_ok"),
        }
