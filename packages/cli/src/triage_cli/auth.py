"""GitHub token resolution for the apply command.

Sources, first match wins:
  1. ``github_token`` in the loaded config (filled from GITHUB_TOKEN)
  2. GH_TOKEN, the variable the GitHub CLI itself honours
  3. ``gh auth token`` for whoever runs triage locally
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")
_GH_TIMEOUT = 5


def _gh_cli_token() -> str | None:
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=_GH_TIMEOUT,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        logger.debug("gh CLI unavailable; no token from gh auth.")
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def resolve_github_token(config: dict | None = None) -> str | None:
    """Return a GitHub token, or None when no source has one.

    Dry runs do not need a token, so the caller decides whether a missing
    token is an error.
    """
    if config and config.get("github_token"):
        return config["github_token"]
    for name in _ENV_VARS:
        token = os.environ.get(name)
        if token:
            logger.debug("Using GitHub token from %s.", name)
            return token
    token = _gh_cli_token()
    if token:
        logger.debug("Resolved GitHub token via gh CLI session.")
    return token
