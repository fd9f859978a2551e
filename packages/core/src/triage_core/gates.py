"""Quality gate pipeline: lint, tests and secret scan.

Gates run in a fixed order inside the repo worktree. Each produces a
GateResult(ran, ok, output). A gate the repo policy does not configure
reports ran=False, ok=True, so an absent gate never blocks. A gate that
blows up is reported as ok=False with the error in its output; the
pipeline itself never raises because of a gate.

The aggregate ``overall_ok`` is written back into the plan's ``git``
block, where the executor reads it before dispatching anything.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from triage_core.config import load_policy
from triage_core.errors import GateExecutionFailure, InvalidPlan
from triage_core.plan import GATE_KEYS, ReviewPlan
from triage_store.documents import MISSING, get_field, read_json, write_json_atomic
from triage_store.errors import DocumentError

logger = logging.getLogger(__name__)

DEFAULT_SECRET_SCAN_COMMAND = "gitleaks detect --no-banner --source ."
_MAX_OUTPUT_CHARS = 4000


@dataclass
class GateResult:
    ran: bool
    ok: bool
    output: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"ran": self.ran, "ok": self.ok, "output": self.output}


NOT_CONFIGURED = GateResult(ran=False, ok=True, output="not configured")

GateRunner = Callable[[Path, Mapping[str, Any], float], GateResult]


@dataclass
class GateReport:
    lint: GateResult
    tests: GateResult
    secrets: GateResult

    @property
    def overall_ok(self) -> bool:
        return all(result.ok for result in (self.lint, self.tests, self.secrets))

    def failed_gates(self) -> list[str]:
        return [name for name in GATE_KEYS if not getattr(self, name).ok]

    def to_git_block(self) -> dict[str, Any]:
        """Gate results in the shape stored under the plan's ``git`` key."""
        return {
            "lint": self.lint.to_dict(),
            "tests": self.tests.to_dict(),
            "secrets": {"scanned": self.secrets.ran, "ok": self.secrets.ok, "output": self.secrets.output},
            "quality_gates_ok": self.overall_ok,
        }


def _tail(text: str) -> str:
    text = text.strip()
    if len(text) > _MAX_OUTPUT_CHARS:
        return "... [truncated]\n" + text[-_MAX_OUTPUT_CHARS:]
    return text


def run_command_gate(name: str, command: str, cwd: Path, timeout: float) -> GateResult:
    """Run one gate command without a shell; exit code 0 means the gate passed."""
    argv = shlex.split(command)
    if not argv:
        raise GateExecutionFailure(f"{name}: empty command")
    if shutil.which(argv[0]) is None:
        raise GateExecutionFailure(f"{name}: executable not available: {argv[0]}")

    logger.debug("Running %s gate in %s: %s", name, cwd, command)
    try:
        process = subprocess.run(  # noqa: S603  # command comes from the repo policy
            argv,
            cwd=cwd,
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise GateExecutionFailure(f"{name}: timed out after {timeout}s")
    except OSError as e:
        raise GateExecutionFailure(f"{name}: could not start {argv[0]}: {e}")

    output = "\n".join(part for part in (process.stdout, process.stderr) if part)
    return GateResult(ran=True, ok=process.returncode == 0, output=_tail(output))


def lint_gate(worktree: Path, policy: Mapping[str, Any], timeout: float) -> GateResult:
    command = policy.get("lint_command")
    if not command:
        return NOT_CONFIGURED
    return run_command_gate("lint", command, worktree, timeout)


def tests_gate(worktree: Path, policy: Mapping[str, Any], timeout: float) -> GateResult:
    command = policy.get("test_command")
    if not command:
        return NOT_CONFIGURED
    return run_command_gate("tests", command, worktree, timeout)


def secret_scan_gate(worktree: Path, policy: Mapping[str, Any], timeout: float) -> GateResult:
    if not policy.get("secret_scan", True):
        return NOT_CONFIGURED
    command = policy.get("secret_scan_command")
    if not command:
        if shutil.which("gitleaks") is None:
            logger.warning("Secret scan enabled but gitleaks is not installed; skipping for %s", worktree)
            return GateResult(ran=False, ok=True, output="gitleaks not installed")
        command = DEFAULT_SECRET_SCAN_COMMAND
    return run_command_gate("secrets", command, worktree, timeout)


DEFAULT_GATES: dict[str, GateRunner] = {
    "lint": lint_gate,
    "tests": tests_gate,
    "secrets": secret_scan_gate,
}


def _plan_repo(plan_path: Path) -> str:
    try:
        document = read_json(plan_path)
    except DocumentError as e:
        raise InvalidPlan(str(e)) from e
    repo = get_field(document, "repo")
    if document is None or not isinstance(repo, str):
        raise InvalidPlan(f"Cannot determine repo from plan {plan_path}")
    return repo


def run_gates(
    worktree_path: str | Path,
    plan_path: str | Path,
    config: Mapping[str, Any],
    gates: Mapping[str, GateRunner] | None = None,
) -> GateReport:
    """Run lint, test and secret-scan gates for the plan's repo.

    ``gates`` replaces the built-in runners by name (used by tests and by
    callers with their own gate implementations).
    """
    worktree = Path(worktree_path)
    repo = _plan_repo(Path(plan_path))
    policy = load_policy(dict(config), repo)
    timeout = float(config.get("gate_timeout", 600))
    runners = {**DEFAULT_GATES, **(gates or {})}

    results: dict[str, GateResult] = {}
    for name in GATE_KEYS:
        try:
            result = runners[name](worktree, policy, timeout)
        except Exception as e:
            logger.warning("%s gate failed to run for %s: %s", name, repo, e)
            result = GateResult(ran=True, ok=False, output=f"{type(e).__name__}: {e}")
        results[name] = result
        logger.info("%s gate for %s: ran=%s ok=%s", name, repo, result.ran, result.ok)

    return GateReport(lint=results["lint"], tests=results["tests"], secrets=results["secrets"])


def persist_gate_results(plan_path: str | Path, report: GateReport) -> None:
    """Write gate results into the plan's ``git`` block, leaving everything else alone."""
    plan_path = Path(plan_path)
    try:
        document = read_json(plan_path)
    except DocumentError as e:
        raise InvalidPlan(str(e)) from e
    if not isinstance(document, dict):
        raise InvalidPlan(f"Plan {plan_path} is missing or not a JSON object")

    git = document.get("git")
    if git is None:
        git = document["git"] = {}
    if not isinstance(git, dict):
        raise InvalidPlan(f"Plan {plan_path} has a non-object git block")

    git.update(report.to_git_block())
    write_json_atomic(plan_path, document)


def gates_passed(plan: ReviewPlan) -> bool:
    """Whether the plan's recorded gates allow mutating actions.

    Both signals must agree: an explicit ``quality_gates_ok`` of false
    blocks, and so does any recorded gate whose ``ok`` is false, whatever
    the explicit flag says. A plan with no gate results passes vacuously.
    """
    explicit = get_field(plan.git, "quality_gates_ok")
    if explicit is not MISSING and explicit is not None and not explicit:
        return False
    for name in GATE_KEYS:
        ok = get_field(plan.git, (name, "ok"))
        if ok is not MISSING and not ok:
            return False
    return True
