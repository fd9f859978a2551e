"""Hosting-platform client used by the action executor.

The executor only depends on the HostingClient protocol. GithubClient is
the PyGithub-backed implementation; tests substitute a MagicMock or a small
fake. Every method returns an optional platform identifier (a URL) on
success and raises ActionError(kind) on failure. Nothing here retries:
retrying is the next invocation's job, guided by the dedup log.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Protocol

import requests
from github import (
    BadCredentialsException,
    Github,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)

from triage_core.errors import ActionError

logger = logging.getLogger(__name__)


class HostingClient(Protocol):
    def comment(self, kind: str, number: int, body: str) -> str | None: ...

    def close(self, kind: str, number: int, reason: str | None = None, body: str | None = None) -> str | None: ...

    def add_labels(self, kind: str, number: int, labels: list[str]) -> str | None: ...

    def edit(self, kind: str, number: int, title: str | None = None, body: str | None = None) -> str | None: ...


def classify_github_error(e: GithubException) -> ActionError:
    """Map a PyGithub exception onto an ActionError kind."""
    message = ""
    if isinstance(e.data, dict):
        message = str(e.data.get("message", ""))
    message = message or str(e)
    rate_limited = "rate limit" in message.lower()

    if isinstance(e, RateLimitExceededException) or (e.status in (403, 429) and rate_limited):
        return ActionError("rate-limit", message)
    if isinstance(e, BadCredentialsException) or e.status in (401, 403):
        return ActionError("auth", message)
    if isinstance(e, UnknownObjectException) or e.status == 404:
        return ActionError("not-found", message)
    if e.status == 422:
        return ActionError("invalid", message)
    return ActionError("platform", message)


@contextmanager
def _platform_errors():
    # PyGithub lets transport failures from requests through unwrapped.
    try:
        yield
    except GithubException as e:
        raise classify_github_error(e) from e
    except requests.RequestException as e:
        raise ActionError("platform", f"{type(e).__name__}: {e}") from e


class GithubClient:
    """HostingClient backed by the GitHub REST API via PyGithub."""

    def __init__(self, repo_name: str, token: str, gh: Github | None = None):
        self.repo_name = repo_name
        self._gh = gh if gh is not None else Github(token)
        self._repo = None

    @property
    def repo(self):
        if self._repo is None:
            with _platform_errors():
                self._repo = self._gh.get_repo(self.repo_name)
        return self._repo

    def _issue(self, number: int):
        # Pull requests are issues too: comments and labels go through the issue API.
        return self.repo.get_issue(number)

    def comment(self, kind: str, number: int, body: str) -> str | None:
        with _platform_errors():
            created = self._issue(number).create_comment(body)
        logger.debug("Commented on %s %s#%d", self.repo_name, kind, number)
        return getattr(created, "html_url", None)

    def close(self, kind: str, number: int, reason: str | None = None, body: str | None = None) -> str | None:
        # Close before commenting: a failed close must not leave a comment
        # behind that the retry would post a second time.
        with _platform_errors():
            issue = self._issue(number)
            if kind == "pr":
                self.repo.get_pull(number).edit(state="closed")
            else:
                issue.edit(state="closed", state_reason=reason or "completed")
            if body:
                issue.create_comment(body)
        logger.debug("Closed %s %s#%d", self.repo_name, kind, number)
        return getattr(issue, "html_url", None)

    def add_labels(self, kind: str, number: int, labels: list[str]) -> str | None:
        with _platform_errors():
            issue = self._issue(number)
            issue.add_to_labels(*labels)
        return getattr(issue, "html_url", None)

    def edit(self, kind: str, number: int, title: str | None = None, body: str | None = None) -> str | None:
        # PyGithub rejects None for optional fields; send only what changes.
        changes = {k: v for k, v in (("title", title), ("body", body)) if v is not None}
        if not changes:
            raise ActionError("invalid", "edit needs a title or body")
        with _platform_errors():
            target = self.repo.get_pull(number) if kind == "pr" else self._issue(number)
            target.edit(**changes)
        return getattr(target, "html_url", None)
