"""Tests for ReviewStateStore."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from triage_store.errors import DocumentError, LockTimeout
from triage_store.lock import StateLock
from triage_store.models import ItemOutcome, RepoOutcome
from triage_store.state import ReviewStateStore


def _make_store(tmp_path, timeout=10.0):
    return ReviewStateStore(tmp_path, lock_timeout=timeout)


def _make_repo_outcome(repo="owner/repo", outcome="completed", run_id="run-1", items_ok=2, items_failed=0):
    return RepoOutcome(
        repo=repo,
        outcome=outcome,
        duration=1.5,
        items_ok=items_ok,
        items_failed=items_failed,
        run_id=run_id,
    )


class TestInit:
    def test_creates_empty_document(self, tmp_path):
        store = _make_store(tmp_path)
        store.init()
        assert store.path == tmp_path / "review" / "review-state.json"
        assert json.loads(store.path.read_text()) == {"items": {}, "repos": {}, "runs": {}}

    def test_is_idempotent_and_preserves_data(self, tmp_path):
        store = _make_store(tmp_path)
        store.init()
        store.record_item_outcome("owner/repo", "issue", 1, "fix")
        store.init()
        assert store.get_item("owner/repo", "issue", 1)["outcome"] == "fix"

    def test_fills_missing_sections(self, tmp_path):
        store = _make_store(tmp_path)
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"items": {"k": {"outcome": "skip"}}}))
        store.init()
        document = store.load()
        assert document["items"] == {"k": {"outcome": "skip"}}
        assert document["repos"] == {}
        assert document["runs"] == {}


class TestRecording:
    def test_item_outcome_keyed_by_repo_type_and_number(self, tmp_path):
        store = _make_store(tmp_path)
        store.record_item_outcome("owner/repo", "pr", 7, "fix", notes="patched")

        document = store.load()
        assert list(document["items"]) == ["owner/repo#pr-7"]
        record = document["items"]["owner/repo#pr-7"]
        assert record["outcome"] == "fix"
        assert record["notes"] == "patched"
        assert record["timestamp"].endswith("Z")

    def test_item_outcome_is_upsert(self, tmp_path):
        store = _make_store(tmp_path)
        store.record_item_outcome("owner/repo", "issue", 1, "needs-info")
        store.record_item_outcome("owner/repo", "issue", 1, "fix")
        document = store.load()
        assert len(document["items"]) == 1
        assert document["items"]["owner/repo#issue-1"]["outcome"] == "fix"

    def test_repo_outcome(self, tmp_path):
        store = _make_store(tmp_path)
        store.record_repo_outcome("owner/repo", "partial", 3.2, 4, 1, run_id="run-9")
        record = store.get_repo("owner/repo")
        assert record["outcome"] == "partial"
        assert record["items_ok"] == 4
        assert record["items_failed"] == 1
        assert record["duration"] == 3.2
        assert record["run_id"] == "run-9"
        assert "last_review" in record

    def test_run_completion_upserts(self, tmp_path):
        store = _make_store(tmp_path)
        store.record_run_completion("run-1", 1, 2, 0)
        store.record_run_completion("run-1", 3, 7, 1)
        run = store.get_run("run-1")
        assert run["repos_processed"] == 3
        assert run["items_ok"] == 7
        assert run["items_failed"] == 1
        assert len(store.load()["runs"]) == 1

    def test_record_repo_review_writes_items_and_repo_together(self, tmp_path):
        store = _make_store(tmp_path)
        items = [
            ItemOutcome(item_type="issue", number=1, outcome="fix"),
            ItemOutcome(item_type="pr", number=2, outcome="failed", notes="close failed: rate-limit"),
        ]
        store.record_repo_review(_make_repo_outcome(items_ok=1, items_failed=1, outcome="partial"), items)

        document = store.load()
        assert set(document["items"]) == {"owner/repo#issue-1", "owner/repo#pr-2"}
        assert document["repos"]["owner/repo"]["outcome"] == "partial"

    def test_records_for_other_repos_are_untouched(self, tmp_path):
        store = _make_store(tmp_path)
        store.record_repo_outcome("owner/a", "completed", 1.0, 1, 0)
        store.record_repo_outcome("owner/b", "failed", 1.0, 0, 1)
        assert store.get_repo("owner/a")["outcome"] == "completed"
        assert store.get_repo("owner/b")["outcome"] == "failed"

    def test_queries_return_none_when_absent(self, tmp_path):
        store = _make_store(tmp_path)
        assert store.get_item("owner/repo", "issue", 1) is None
        assert store.get_repo("owner/repo") is None
        assert store.get_run("run-1") is None


class TestUpdate:
    def test_mutator_may_return_replacement(self, tmp_path):
        store = _make_store(tmp_path)
        written = store.update(lambda document: {"items": {"x": {}}})
        assert written["items"] == {"x": {}}
        assert written["repos"] == {}

    def test_failing_mutator_leaves_document_untouched(self, tmp_path):
        store = _make_store(tmp_path)
        store.record_item_outcome("owner/repo", "issue", 1, "fix")

        def broken(document):
            document["items"].clear()
            raise RuntimeError("mutator failed")

        with pytest.raises(RuntimeError):
            store.update(broken)
        assert store.get_item("owner/repo", "issue", 1) is not None

    def test_corrupt_document_raises(self, tmp_path):
        store = _make_store(tmp_path)
        store.path.parent.mkdir(parents=True)
        store.path.write_text("[1, 2")
        with pytest.raises(DocumentError):
            store.load()

    def test_non_object_document_raises(self, tmp_path):
        store = _make_store(tmp_path)
        store.path.parent.mkdir(parents=True)
        store.path.write_text("[1, 2]")
        with pytest.raises(DocumentError):
            store.load()

    def test_times_out_while_lock_is_held(self, tmp_path):
        store = _make_store(tmp_path, timeout=0.2)
        with StateLock(store.path, timeout=1.0):
            with pytest.raises(LockTimeout):
                store.record_item_outcome("owner/repo", "issue", 1, "fix")
        assert store.get_item("owner/repo", "issue", 1) is None

    def test_concurrent_updates_are_all_kept(self, tmp_path):
        store = _make_store(tmp_path)
        store.init()
        count = 40

        def record(n):
            # A fresh store per writer, as separate invocations would have.
            _make_store(tmp_path).record_item_outcome("owner/repo", "issue", n, "fix")

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(record, range(1, count + 1)))

        items = store.load()["items"]
        assert len(items) == count
        assert all(f"owner/repo#issue-{n}" in items for n in range(1, count + 1))


class TestIsRepoComplete:
    def test_completed_in_same_run(self, tmp_path):
        store = _make_store(tmp_path)
        store.record_repo_review(_make_repo_outcome(run_id="run-1"), [])
        assert store.is_repo_complete("owner/repo", "run-1") is True

    def test_other_run_is_not_complete(self, tmp_path):
        store = _make_store(tmp_path)
        store.record_repo_review(_make_repo_outcome(run_id="run-1"), [])
        assert store.is_repo_complete("owner/repo", "run-2") is False

    def test_partial_is_not_complete(self, tmp_path):
        store = _make_store(tmp_path)
        store.record_repo_review(_make_repo_outcome(outcome="partial", run_id="run-1"), [])
        assert store.is_repo_complete("owner/repo", "run-1") is False

    def test_unknown_repo(self, tmp_path):
        assert _make_store(tmp_path).is_repo_complete("owner/none", "run-1") is False
