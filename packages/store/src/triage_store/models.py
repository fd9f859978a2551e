"""Records persisted by the store.

Decoupled from triage_core so the store layer can be used on its own and
triage_core has no knowledge of persistence concerns. The CLI maps
executor results onto these records.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

RESULT_SUCCESS = "success"
RESULT_FAILED = "failed"


def utc_timestamp() -> str:
    """Current UTC time as an ISO-8601 string with a trailing Z."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def item_key(repo: str, item_type: str, number: int | str) -> str:
    """State key of one triaged item, e.g. ``owner/repo#issue-42``."""
    return f"{repo}#{item_type}-{number}"


@dataclass
class ItemOutcome:
    """Outcome of one triaged issue or PR."""

    item_type: str  # "issue" | "pr"
    number: int
    outcome: str  # usually the plan decision, or "failed"
    notes: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"outcome": self.outcome, "notes": self.notes, "timestamp": utc_timestamp()}


@dataclass
class RepoOutcome:
    repo: str
    outcome: str  # "completed" | "partial" | "failed"
    duration: float
    items_ok: int
    items_failed: int
    run_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome,
            "duration": self.duration,
            "items_ok": self.items_ok,
            "items_failed": self.items_failed,
            "last_review": utc_timestamp(),
            "run_id": self.run_id,
        }


@dataclass
class ActionLogEntry:
    """One attempt to execute a canonical action against the platform.

    Entries are append-only. Only entries with result "success" count as
    "already executed"; failed attempts stay in the log for audit and are
    retried on the next invocation.
    """

    hash: str
    repo: str
    run_id: str
    canonical: str
    result: str  # "success" | "failed"
    timestamp: str = field(default_factory=utc_timestamp)
    override: bool = False
    error: str | None = None
    identifier: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.result == RESULT_SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ActionLogEntry:
        return cls(
            hash=d.get("hash", ""),
            repo=d.get("repo", ""),
            run_id=d.get("run_id", ""),
            canonical=d.get("canonical", ""),
            result=d.get("result", ""),
            timestamp=d.get("timestamp", ""),
            override=bool(d.get("override", False)),
            error=d.get("error"),
            identifier=d.get("identifier"),
        )

