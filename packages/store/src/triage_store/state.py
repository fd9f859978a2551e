"""ReviewStateStore: the shared items/repos/runs record.

One document per installation, contended by every triage invocation on the
machine. The only sanctioned mutation path is update(): lock, read, apply a
mutator, atomic write, unlock. Keys are deterministic, so every record_*
call is an upsert and re-running a repo never produces duplicates.

Document shape:
  {
    "items": {"<repo>#<type>-<number>": {outcome, notes, timestamp}},
    "repos": {"<repo>": {outcome, duration, items_ok, items_failed, last_review, run_id}},
    "runs":  {"<run_id>": {repos_processed, items_ok, items_failed, completed_at}}
  }

Each record_* method is individually atomic. Recording several things as
one unit needs a single mutator (see record_repo_review()).
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from triage_store.documents import read_json, write_json_atomic
from triage_store.errors import DocumentError
from triage_store.lock import DEFAULT_TIMEOUT, StateLock
from triage_store.models import ItemOutcome, RepoOutcome, item_key, utc_timestamp

logger = logging.getLogger(__name__)

STATE_FILENAME = "review-state.json"
_SECTIONS = ("items", "repos", "runs")

Mutator = Callable[[dict[str, Any]], "dict[str, Any] | None"]


def empty_state() -> dict[str, Any]:
    return {section: {} for section in _SECTIONS}


def _normalise(document: Any) -> dict[str, Any]:
    if document is None:
        return empty_state()
    if not isinstance(document, dict):
        raise DocumentError(f"Review state must be a JSON object, got {type(document).__name__}")
    for section in _SECTIONS:
        if not isinstance(document.get(section), dict):
            document[section] = {}
    return document


class ReviewStateStore:
    """Lock-guarded JSON document under ``<state_dir>/review/``."""

    def __init__(self, state_dir: str | Path, lock_timeout: float = DEFAULT_TIMEOUT):
        self.state_dir = Path(state_dir)
        self.lock_timeout = lock_timeout

    @property
    def path(self) -> Path:
        return self.state_dir / "review" / STATE_FILENAME

    def init(self) -> None:
        """Create the document if absent. Existing data is never overwritten."""
        if self.path.exists():
            # Only write when a section is actually missing.
            current = read_json(self.path)
            if isinstance(current, dict) and all(isinstance(current.get(s), dict) for s in _SECTIONS):
                return
        # update() fills in whatever section is missing and keeps the rest.
        self.update(lambda document: None)

    def load(self) -> dict[str, Any]:
        """Read the current document without locking.

        Safe because writers replace the file atomically; the result may be
        stale by the time the caller looks at it.
        """
        return _normalise(read_json(self.path))

    def update(self, mutator: Mutator) -> dict[str, Any]:
        """Apply ``mutator`` to the document under the state lock and persist it.

        The mutator receives the current document and may modify it in place
        or return a replacement. Returns the document as written.
        """
        with StateLock(self.path, timeout=self.lock_timeout):
            document = _normalise(read_json(self.path))
            working = copy.deepcopy(document)
            result = mutator(working)
            updated = _normalise(result if result is not None else working)
            write_json_atomic(self.path, updated)
        return updated

    # ------------------------------------------------------------------ #
    # Outcome recording                                                    #
    # ------------------------------------------------------------------ #

    def record_item_outcome(self, repo: str, item_type: str, number: int, outcome: str, notes: str = "") -> None:
        item = ItemOutcome(item_type=item_type, number=number, outcome=outcome, notes=notes)

        def upsert(document: dict[str, Any]) -> None:
            document["items"][item_key(repo, item_type, number)] = item.to_dict()

        self.update(upsert)

    def record_repo_outcome(
        self,
        repo: str,
        outcome: str,
        duration: float,
        items_ok: int,
        items_failed: int,
        run_id: str | None = None,
    ) -> None:
        record = RepoOutcome(
            repo=repo,
            outcome=outcome,
            duration=duration,
            items_ok=items_ok,
            items_failed=items_failed,
            run_id=run_id,
        )

        def upsert(document: dict[str, Any]) -> None:
            document["repos"][repo] = record.to_dict()

        self.update(upsert)

    def record_run_completion(self, run_id: str, repos_processed: int, items_ok: int, items_failed: int) -> None:
        def upsert(document: dict[str, Any]) -> None:
            document["runs"][run_id] = {
                "repos_processed": repos_processed,
                "items_ok": items_ok,
                "items_failed": items_failed,
                "completed_at": utc_timestamp(),
            }

        self.update(upsert)

    def record_repo_review(self, outcome: RepoOutcome, items: Iterable[ItemOutcome]) -> None:
        """Record every item outcome and the repo outcome in one transaction."""
        items = list(items)

        def upsert(document: dict[str, Any]) -> None:
            for item in items:
                document["items"][item_key(outcome.repo, item.item_type, item.number)] = item.to_dict()
            document["repos"][outcome.repo] = outcome.to_dict()

        self.update(upsert)
        logger.info("Recorded %s for %s (%d item(s))", outcome.outcome, outcome.repo, len(items))

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def get_item(self, repo: str, item_type: str, number: int) -> dict[str, Any] | None:
        return self.load()["items"].get(item_key(repo, item_type, number))

    def get_repo(self, repo: str) -> dict[str, Any] | None:
        return self.load()["repos"].get(repo)

    def get_run(self, run_id: str) -> dict[str, Any] | None:
        return self.load()["runs"].get(run_id)

    def is_repo_complete(self, repo: str, run_id: str) -> bool:
        """True when ``repo`` already finished cleanly within ``run_id``."""
        record = self.get_repo(repo)
        return bool(record) and record.get("run_id") == run_id and record.get("outcome") == "completed"
