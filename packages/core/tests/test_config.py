"""Tests for configuration loading."""

import pytest

from triage_core.config import DEFAULT_POLICY, default_state_dir, load_config, load_policy


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "TRIAGE_STATE_DIR",
        "TRIAGE_DRY_RUN",
        "TRIAGE_GATE_OVERRIDE",
        "TRIAGE_LOCK_TIMEOUT",
        "GITHUB_TOKEN",
        "XDG_STATE_HOME",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["dry_run"] is False
    assert config["gate_override"] is False
    assert config["lock_timeout"] == 30.0
    assert config["plan_path"] == ".triage/review-plan.json"
    assert config["policy"] == DEFAULT_POLICY
    assert config["repos"] == {}


def test_default_state_dir_uses_xdg(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path))
    assert default_state_dir() == tmp_path / "triage"
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["state_dir"] == str(tmp_path / "triage")


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".triage.yml"
    cfg.write_text("lock_timeout: 5\ngate_timeout: 60\nplan_path: plan.json\n")
    config = load_config(config_path=str(cfg))
    assert config["lock_timeout"] == 5.0
    assert config["gate_timeout"] == 60
    assert config["plan_path"] == "plan.json"


def test_policy_merged_over_defaults(tmp_path):
    cfg = tmp_path / ".triage.yml"
    cfg.write_text("policy:\n  lint_command: ruff check .\n")
    config = load_config(config_path=str(cfg))
    assert config["policy"]["lint_command"] == "ruff check ."
    assert config["policy"]["secret_scan"] is True


def test_env_vars_override_config_file(tmp_path, monkeypatch):
    cfg = tmp_path / ".triage.yml"
    cfg.write_text("dry_run: false\nstate_dir: /from/file\n")
    monkeypatch.setenv("TRIAGE_DRY_RUN", "1")
    monkeypatch.setenv("TRIAGE_GATE_OVERRIDE", "yes")
    monkeypatch.setenv("TRIAGE_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("TRIAGE_LOCK_TIMEOUT", "2.5")
    config = load_config(config_path=str(cfg))
    assert config["dry_run"] is True
    assert config["gate_override"] is True
    assert config["state_dir"] == str(tmp_path / "state")
    assert config["lock_timeout"] == 2.5


def test_false_env_flag_disables(tmp_path, monkeypatch):
    cfg = tmp_path / ".triage.yml"
    cfg.write_text("dry_run: true\n")
    monkeypatch.setenv("TRIAGE_DRY_RUN", "false")
    assert load_config(config_path=str(cfg))["dry_run"] is False


def test_cli_overrides_everything(tmp_path, monkeypatch):
    cfg = tmp_path / ".triage.yml"
    cfg.write_text("state_dir: /from/file\n")
    monkeypatch.setenv("TRIAGE_STATE_DIR", "/from/env")
    config = load_config(config_path=str(cfg), cli_overrides={"state_dir": "/from/cli"})
    assert config["state_dir"] == "/from/cli"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".triage.yml"
    cfg.write_text("lock_timeout: 7\n")
    config = load_config(config_path=str(cfg), cli_overrides={"lock_timeout": None})
    assert config["lock_timeout"] == 7.0


def test_invalid_yaml_raises_value_error(tmp_path):
    cfg = tmp_path / ".triage.yml"
    cfg.write_text("policy: [unclosed\n")
    with pytest.raises(ValueError):
        load_config(config_path=str(cfg))


def test_non_mapping_raises_value_error(tmp_path):
    cfg = tmp_path / ".triage.yml"
    cfg.write_text("- just\n- a list\n")
    with pytest.raises(ValueError, match="mapping"):
        load_config(config_path=str(cfg))


def test_github_token_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "gh-token")
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["github_token"] == "gh-token"


def test_policy_is_not_shared_reference(tmp_path):
    """Mutating one config's policy must not affect the defaults."""
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    config["policy"]["lint_command"] = "flake8"
    assert DEFAULT_POLICY["lint_command"] is None


def test_load_policy_applies_repo_override():
    config = {
        "policy": {"test_command": "pytest -q"},
        "repos": {"owner/special": {"test_command": "make test", "secret_scan": False}},
    }
    special = load_policy(config, "owner/special")
    assert special["test_command"] == "make test"
    assert special["secret_scan"] is False
    other = load_policy(config, "owner/other")
    assert other["test_command"] == "pytest -q"
    assert other["secret_scan"] is True
