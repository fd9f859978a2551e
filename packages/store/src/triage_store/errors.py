"""Infrastructure errors raised by the store layer.

These are fatal to the current invocation: the caller retries at the
invocation level. On-disk state is never left half-written when one of
these is raised, because every mutation goes through an atomic write.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for every store-layer failure."""


class LockError(StoreError):
    """The lock file could not be created, opened or locked (I/O fault)."""


class LockTimeout(LockError):
    """The lock was held by someone else for longer than the deadline."""


class WriteError(StoreError):
    """An atomic write failed; the previous file content is untouched."""


class DocumentError(StoreError):
    """A persisted document exists but cannot be parsed."""
