"""Pending actions: the closed set of operations and their canonical form.

The canonical form is what the dedup log keys on, so it must not depend on
how the planner happened to order keys or labels. Two actions that would
have the same effect on the platform canonicalize to the same string.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from triage_core.errors import InvalidTarget, ValidationError

ITEM_KINDS = ("issue", "pr")
CLOSE_REASONS = ("completed", "not_planned")

_NUMBER_RE = re.compile(r"^[0-9]+$")


class ActionOp(str, Enum):
    COMMENT = "comment"
    CLOSE = "close"
    LABEL = "label"
    EDIT = "edit"


@dataclass(frozen=True)
class Target:
    kind: str  # "issue" | "pr"
    number: int

    def __str__(self) -> str:
        return f"{self.kind}#{self.number}"


@dataclass(frozen=True)
class PendingAction:
    """One side-effecting operation against an issue or PR."""

    op: ActionOp
    target: Target
    params: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op.value, "target": str(self.target), **self.params}

    def describe(self) -> str:
        return f"{self.op.value} {self.target}"


def parse_target(target: Any) -> Target:
    """Split ``<kind>#<number>`` into a Target, or raise InvalidTarget."""
    if not isinstance(target, str):
        raise InvalidTarget(f"Target must be a string, got {type(target).__name__}")
    if target.count("#") != 1:
        raise InvalidTarget(f"Target {target!r} must look like issue#<n> or pr#<n>")
    kind, _, number = target.partition("#")
    kind = kind.strip().lower()
    number = number.strip()
    if kind not in ITEM_KINDS:
        raise InvalidTarget(f"Unknown target kind {kind!r} in {target!r}")
    if not _NUMBER_RE.match(number) or int(number) <= 0:
        raise InvalidTarget(f"Target number in {target!r} must be a positive integer")
    return Target(kind=kind, number=int(number))


def _coerce_op(value: Any) -> ActionOp:
    try:
        return ActionOp(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown action op {value!r}; expected one of {[op.value for op in ActionOp]}")


def _require_text(params: dict[str, Any], key: str, op: ActionOp) -> None:
    value = params.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{op.value} action requires a non-empty {key!r}")


def parse_action(raw: Any) -> PendingAction:
    """Build a PendingAction from its plan dict, checking op-specific parameters."""
    if not isinstance(raw, dict):
        raise ValidationError(f"Action must be an object, got {type(raw).__name__}")
    if "op" not in raw:
        raise ValidationError("Action is missing 'op'")
    if "target" not in raw:
        raise ValidationError("Action is missing 'target'")

    op = _coerce_op(raw["op"])
    target = parse_target(raw["target"])
    params = {k: v for k, v in raw.items() if k not in ("op", "target") and v is not None}

    if op is ActionOp.COMMENT:
        _require_text(params, "body", op)
    elif op is ActionOp.CLOSE:
        reason = params.get("reason")
        if reason is not None and reason not in CLOSE_REASONS:
            raise ValidationError(f"close reason must be one of {list(CLOSE_REASONS)}, got {reason!r}")
        if "body" in params:
            _require_text(params, "body", op)
    elif op is ActionOp.LABEL:
        labels = params.get("labels")
        if (
            not isinstance(labels, list)
            or not labels
            or not all(isinstance(label, str) and label.strip() for label in labels)
        ):
            raise ValidationError("label action requires a non-empty 'labels' list of strings")
    elif op is ActionOp.EDIT:
        if not any(isinstance(params.get(k), str) and params[k].strip() for k in ("title", "body")):
            raise ValidationError("edit action requires a 'title' or 'body'")

    return PendingAction(op=op, target=target, params=params)


def canonicalize(action: PendingAction | dict[str, Any]) -> str:
    """Return the stable, field-order-independent serialization of an action."""
    if not isinstance(action, PendingAction):
        action = parse_action(action)

    params = dict(action.params)
    if action.op is ActionOp.LABEL:
        params["labels"] = sorted({label.strip() for label in params["labels"]})
    elif action.op is ActionOp.CLOSE:
        params.setdefault("reason", CLOSE_REASONS[0])

    payload = {"op": action.op.value, "target": str(action.target), **params}
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
