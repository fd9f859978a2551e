"""Domain errors for plan validation, gates and platform actions.

Infrastructure failures (locks, atomic writes) live in triage_store.errors.
"""

from __future__ import annotations


class ValidationError(Exception):
    """The plan (or a part of it) is malformed. Fatal to that repo's apply phase."""


class InvalidPlan(ValidationError):
    pass


class InvalidTarget(ValidationError):
    """An action target is not of the form ``issue#<n>`` or ``pr#<n>``."""


class GateExecutionFailure(Exception):
    """A quality gate could not run. Downgraded to ok=False by the pipeline."""


class ActionError(Exception):
    """A hosting-platform call failed.

    ``kind`` is one of "auth", "not-found", "rate-limit", "invalid" or
    "platform". The executor records it per action and moves on.
    """

    def __init__(self, kind: str, message: str = ""):
        self.kind = kind
        self.message = message
        super().__init__(f"{kind}: {message}" if message else kind)
