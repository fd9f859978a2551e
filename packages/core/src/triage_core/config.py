import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_POLICY: dict = {
    "lint_command": None,  # e.g. "ruff check ."; None = lint gate not configured
    "test_command": None,  # e.g. "pytest -q"; None = test gate not configured
    "secret_scan": True,
    "secret_scan_command": None,  # None = built-in gitleaks invocation
}

DEFAULT_CONFIG: dict = {
    "state_dir": None,  # None = $XDG_STATE_HOME/triage or ~/.local/state/triage
    "dry_run": False,
    "gate_override": False,
    "lock_timeout": 30.0,
    "gate_timeout": 600,
    "plan_path": ".triage/review-plan.json",
    "policy": DEFAULT_POLICY,
    "repos": {},  # per-repo policy overrides keyed by owner/name
}

_TRUTHY = {"1", "true", "yes", "on"}


def default_state_dir() -> Path:
    xdg = os.environ.get("XDG_STATE_HOME")
    base = Path(xdg) if xdg else Path.home() / ".local" / "state"
    return base / "triage"


def _env_flag(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None or value == "":
        return None
    return value.strip().lower() in _TRUTHY


def load_config(config_path: str = ".triage.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .triage.yml in the current directory
      3. TRIAGE_* environment variables
      4. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "policy": dict(DEFAULT_POLICY), "repos": {}}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            try:
                file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Cannot parse {config_path}: {e}")
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path} must contain a mapping, got {type(file_config).__name__}")
        config.update(file_config)
        config["policy"] = {**DEFAULT_POLICY, **(file_config.get("policy") or {})}
        config["repos"] = dict(file_config.get("repos") or {})

    if os.environ.get("TRIAGE_STATE_DIR"):
        config["state_dir"] = os.environ["TRIAGE_STATE_DIR"]
    for key, env_name in (("dry_run", "TRIAGE_DRY_RUN"), ("gate_override", "TRIAGE_GATE_OVERRIDE")):
        flag = _env_flag(env_name)
        if flag is not None:
            config[key] = flag
    if os.environ.get("TRIAGE_LOCK_TIMEOUT"):
        config["lock_timeout"] = float(os.environ["TRIAGE_LOCK_TIMEOUT"])

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    if not config.get("state_dir"):
        config["state_dir"] = str(default_state_dir())
    config["lock_timeout"] = float(config["lock_timeout"])

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")

    return config


def load_policy(config: dict, repo: str) -> dict:
    """Return the gate policy for ``repo``: the default policy plus its override."""
    policy = {**DEFAULT_POLICY, **(config.get("policy") or {})}
    override = (config.get("repos") or {}).get(repo) or {}
    policy.update(override)
    return policy
