"""Tests for action parsing and canonicalization."""

import json

import pytest

from triage_core.actions import ActionOp, PendingAction, Target, canonicalize, parse_action, parse_target
from triage_core.errors import InvalidTarget, ValidationError


class TestParseTarget:
    def test_issue_and_pr(self):
        assert parse_target("issue#42") == Target(kind="issue", number=42)
        assert parse_target("pr#7") == Target(kind="pr", number=7)

    def test_str_round_trip(self):
        assert str(parse_target("pr#7")) == "pr#7"

    @pytest.mark.parametrize(
        "raw",
        ["issue42", "issue#4#2", "commit#1", "issue#abc", "issue#0", "issue#-3", "issue#", "#5", 42, None],
    )
    def test_invalid_targets(self, raw):
        with pytest.raises(InvalidTarget):
            parse_target(raw)

    def test_invalid_target_is_a_validation_error(self):
        assert issubclass(InvalidTarget, ValidationError)


class TestParseAction:
    def test_comment(self):
        action = parse_action({"op": "comment", "target": "issue#1", "body": "Thanks!"})
        assert action.op is ActionOp.COMMENT
        assert action.target == Target("issue", 1)
        assert action.params == {"body": "Thanks!"}

    def test_unknown_op(self):
        with pytest.raises(ValidationError, match="Unknown action op"):
            parse_action({"op": "merge", "target": "pr#1"})

    def test_missing_op_or_target(self):
        with pytest.raises(ValidationError):
            parse_action({"target": "pr#1", "body": "x"})
        with pytest.raises(ValidationError):
            parse_action({"op": "comment", "body": "x"})

    def test_comment_requires_body(self):
        with pytest.raises(ValidationError, match="body"):
            parse_action({"op": "comment", "target": "issue#1", "body": "  "})

    def test_close_reason_checked(self):
        parse_action({"op": "close", "target": "issue#1", "reason": "not_planned"})
        with pytest.raises(ValidationError, match="reason"):
            parse_action({"op": "close", "target": "issue#1", "reason": "bored"})

    def test_label_requires_labels(self):
        with pytest.raises(ValidationError):
            parse_action({"op": "label", "target": "issue#1", "labels": []})
        with pytest.raises(ValidationError):
            parse_action({"op": "label", "target": "issue#1", "labels": "bug"})

    def test_edit_requires_title_or_body(self):
        parse_action({"op": "edit", "target": "pr#3", "title": "Better title"})
        with pytest.raises(ValidationError):
            parse_action({"op": "edit", "target": "pr#3"})

    def test_none_params_dropped(self):
        action = parse_action({"op": "edit", "target": "pr#3", "title": "T", "body": None})
        assert action.params == {"title": "T"}


class TestCanonicalize:
    def test_key_order_does_not_matter(self):
        a = {"op": "comment", "target": "issue#1", "body": "Hi"}
        b = {"body": "Hi", "target": "issue#1", "op": "comment"}
        assert canonicalize(a) == canonicalize(b)

    def test_label_order_and_duplicates_do_not_matter(self):
        a = {"op": "label", "target": "issue#1", "labels": ["bug", "triaged"]}
        b = {"op": "label", "target": "issue#1", "labels": ["triaged", "bug", "bug"]}
        assert canonicalize(a) == canonicalize(b)

    def test_close_default_reason(self):
        implicit = {"op": "close", "target": "issue#1"}
        explicit = {"op": "close", "target": "issue#1", "reason": "completed"}
        assert canonicalize(implicit) == canonicalize(explicit)

    def test_different_bodies_differ(self):
        a = {"op": "comment", "target": "issue#1", "body": "Hi"}
        b = {"op": "comment", "target": "issue#1", "body": "Hello"}
        assert canonicalize(a) != canonicalize(b)

    def test_different_targets_differ(self):
        a = {"op": "comment", "target": "issue#1", "body": "Hi"}
        b = {"op": "comment", "target": "pr#1", "body": "Hi"}
        assert canonicalize(a) != canonicalize(b)

    def test_compact_sorted_json(self):
        canonical = canonicalize({"op": "comment", "target": "issue#1", "body": "Hi"})
        assert canonical == '{"body":"Hi","op":"comment","target":"issue#1"}'
        assert json.loads(canonical)["op"] == "comment"

    def test_accepts_pending_action(self):
        action = PendingAction(op=ActionOp.COMMENT, target=Target("issue", 1), params={"body": "Hi"})
        assert canonicalize(action) == canonicalize(action.to_dict())
