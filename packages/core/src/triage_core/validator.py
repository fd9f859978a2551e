"""Structural and referential validation of review plans.

validate_plan() is pure: it reads the file and either returns a parsed
ReviewPlan or raises InvalidPlan describing the first problem found.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from triage_core.actions import ITEM_KINDS, parse_action
from triage_core.errors import InvalidPlan, ValidationError
from triage_core.plan import SUPPORTED_SCHEMA_VERSIONS, ReviewItem, ReviewPlan

_REPO_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_REQUIRED_FIELDS = ("schema_version", "repo", "run_id", "items")


def _parse_item(raw: Any, index: int) -> ReviewItem:
    if not isinstance(raw, dict):
        raise InvalidPlan(f"items[{index}] must be an object")
    item_type = raw.get("type")
    if item_type not in ITEM_KINDS:
        raise InvalidPlan(f"items[{index}].type must be one of {list(ITEM_KINDS)}, got {item_type!r}")
    number = raw.get("number")
    # bool is an int subclass; True is not an issue number.
    if not isinstance(number, int) or isinstance(number, bool) or number <= 0:
        raise InvalidPlan(f"items[{index}].number must be a positive integer, got {number!r}")
    decision = raw.get("decision")
    if not isinstance(decision, str) or not decision.strip():
        raise InvalidPlan(f"items[{index}].decision is required")
    summary = raw.get("summary")
    if summary is None:
        summary = raw.get("title") or ""
    if not isinstance(summary, str):
        raise InvalidPlan(f"items[{index}].summary must be a string")
    return ReviewItem(type=item_type, number=number, decision=decision.strip(), summary=summary)


def validate_document(document: Any, path: Path | None = None) -> ReviewPlan:
    """Validate an in-memory plan document and return the parsed plan."""
    if not isinstance(document, dict):
        raise InvalidPlan(f"Plan must be a JSON object, got {type(document).__name__}")

    for name in _REQUIRED_FIELDS:
        if name not in document:
            raise InvalidPlan(f"Plan is missing required field {name!r}")

    schema_version = str(document["schema_version"])
    if schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        raise InvalidPlan(
            f"Unsupported schema_version {schema_version!r}; supported: {sorted(SUPPORTED_SCHEMA_VERSIONS)}"
        )

    repo = document["repo"]
    if not isinstance(repo, str) or not _REPO_RE.match(repo):
        raise InvalidPlan(f"repo must look like owner/name, got {repo!r}")
    run_id = document["run_id"]
    if not isinstance(run_id, str) or not run_id.strip():
        raise InvalidPlan("run_id must be a non-empty string")

    raw_items = document["items"]
    if not isinstance(raw_items, list):
        raise InvalidPlan("items must be a list")
    items = [_parse_item(raw, i) for i, raw in enumerate(raw_items)]

    raw_actions = document.get("gh_actions", [])
    if raw_actions is None:
        raw_actions = []
    if not isinstance(raw_actions, list):
        raise InvalidPlan("gh_actions must be a list")

    known_targets = {item.target for item in items}
    actions = []
    for i, raw in enumerate(raw_actions):
        try:
            action = parse_action(raw)
        except ValidationError as e:
            raise InvalidPlan(f"gh_actions[{i}]: {e}") from e
        if action.target not in known_targets:
            raise InvalidPlan(f"gh_actions[{i}] targets {action.target}, which is not among the plan items")
        actions.append(action)

    git = document.get("git") or {}
    if not isinstance(git, dict):
        raise InvalidPlan("git must be an object")

    return ReviewPlan(
        schema_version=schema_version,
        repo=repo,
        run_id=run_id,
        items=items,
        actions=actions,
        git=git,
        path=path,
    )


def validate_plan(path: str | Path) -> ReviewPlan:
    """Validate the plan file at ``path``.

    Returns the parsed plan only when every check passes; otherwise raises
    InvalidPlan.
    """
    path = Path(path)
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise InvalidPlan(f"Plan file not found: {path}")
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidPlan(f"Cannot read plan {path}: {e}")
    except json.JSONDecodeError as e:
        raise InvalidPlan(f"Plan {path} is not valid JSON: {e}")
    return validate_document(document, path=path)
