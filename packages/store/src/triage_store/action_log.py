"""ActionLog: the append-only dedup log of platform side effects.

Data format: one JSON object per line in ``<state_dir>/review/gh-actions.jsonl``.
Each line is an ActionLogEntry. Appends happen under the log's own lock and
are fsynced before the lock is released. A line torn by a crash mid-append
is skipped on read; the action it described is then simply retried.

The log is the sole source of truth for "has this side effect happened".
Lookups are keyed by (repo, hash of the canonical action) and deliberately
ignore run_id, so an action is never repeated by a later run against the
same repo. Each entry still records which run performed it.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from collections.abc import Callable, Iterator
from pathlib import Path

from triage_store.errors import DocumentError, WriteError
from triage_store.lock import DEFAULT_TIMEOUT, StateLock
from triage_store.models import RESULT_FAILED, RESULT_SUCCESS, ActionLogEntry

logger = logging.getLogger(__name__)

LOG_FILENAME = "gh-actions.jsonl"

# dispatch() returns the platform identifier (may be None) or raises.
Dispatch = Callable[[], "str | None"]


def action_hash(canonical: str) -> str:
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ActionLog:
    """Lock-guarded JSON-lines log of executed actions."""

    def __init__(self, state_dir: str | Path, lock_timeout: float = DEFAULT_TIMEOUT):
        self.state_dir = Path(state_dir)
        self.lock_timeout = lock_timeout

    @property
    def path(self) -> Path:
        return self.state_dir / "review" / LOG_FILENAME

    def _iter_entries(self) -> Iterator[ActionLogEntry]:
        try:
            f = open(self.path, encoding="utf-8")
        except FileNotFoundError:
            return
        except OSError as e:
            raise DocumentError(f"Cannot read action log {self.path}: {e}") from e

        with f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed action log line %d in %s", lineno, self.path)
                    continue
                if isinstance(data, dict):
                    yield ActionLogEntry.from_dict(data)

    def entries(self, repo: str | None = None) -> list[ActionLogEntry]:
        """Return logged entries in append order, optionally for one repo."""
        return [e for e in self._iter_entries() if repo is None or e.repo == repo]

    def already_executed(self, repo: str, canonical: str) -> bool:
        """True iff a successful entry exists for this repo and canonical action."""
        digest = action_hash(canonical)
        return any(e.succeeded and e.repo == repo and e.hash == digest for e in self._iter_entries())

    def _write(self, entry: ActionLogEntry) -> None:
        line = json.dumps(entry.to_dict(), sort_keys=True, ensure_ascii=False) + "\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise WriteError(f"Cannot append to action log {self.path}: {e}") from e

    def append(
        self,
        repo: str,
        run_id: str,
        canonical: str,
        result: str,
        override: bool = False,
        error: str | None = None,
        identifier: str | None = None,
    ) -> ActionLogEntry:
        """Append one entry under the log lock and return it."""
        entry = ActionLogEntry(
            hash=action_hash(canonical),
            repo=repo,
            run_id=run_id,
            canonical=canonical,
            result=result,
            override=override,
            error=error,
            identifier=identifier,
        )
        with StateLock(self.path, timeout=self.lock_timeout):
            self._write(entry)
        return entry

    def execute_once(
        self,
        repo: str,
        run_id: str,
        canonical: str,
        dispatch: Dispatch,
        override: bool = False,
        error_kind: Callable[[Exception], str | None] | None = None,
    ) -> ActionLogEntry | None:
        """Dispatch an action at most once across every concurrent invocation.

        Holds the log lock across check, dispatch and append so that two
        processes racing on the same action cannot both perform it. Returns
        None when the action had already succeeded.

        If ``dispatch`` raises, a failed entry is appended and the exception
        is re-raised. ``error_kind`` maps the exception to the short kind
        stored on that entry.

        The lock stays held while ``dispatch`` talks to the platform, so
        every other invocation sharing this log queues behind it. Size
        ``lock_timeout`` to cover the slowest expected platform call times
        the number of invocations that may run in parallel, or waiters will
        fail with LockTimeout.
        """
        digest = action_hash(canonical)
        with StateLock(self.path, timeout=self.lock_timeout):
            if any(e.succeeded and e.repo == repo and e.hash == digest for e in self._iter_entries()):
                logger.info("Action %s for %s already executed by another run", digest[:12], repo)
                return None
            try:
                identifier = dispatch()
            except Exception as e:
                kind = error_kind(e) if error_kind is not None else type(e).__name__
                self._write(
                    ActionLogEntry(
                        hash=digest,
                        repo=repo,
                        run_id=run_id,
                        canonical=canonical,
                        result=RESULT_FAILED,
                        override=override,
                        error=kind,
                    )
                )
                raise
            entry = ActionLogEntry(
                hash=digest,
                repo=repo,
                run_id=run_id,
                canonical=canonical,
                result=RESULT_SUCCESS,
                override=override,
                identifier=identifier,
            )
            self._write(entry)
        return entry
