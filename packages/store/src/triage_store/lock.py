"""Per-resource advisory locks shared by independent processes.

Each protected resource (the review state document, the action log) gets a
sibling ``<name>.lock`` file locked with fcntl.flock(). flock() locks belong
to the open file description, so two StateLock instances contend even
inside one process, which is what lets the tests exercise contention with
plain threads.

The lock file is never unlinked on release: removing it would let a waiter
that already opened the old inode and a newcomer that creates a fresh one
both believe they hold the lock.
"""

from __future__ import annotations

import fcntl
import logging
import os
import time
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from triage_store.errors import LockError, LockTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0
_POLL_INTERVAL = 0.05


class StateLock:
    """Exclusive advisory lock on one resource path.

    Usage:
        with StateLock(state_file, timeout=10.0):
            ...  # read-modify-write state_file

    Not re-entrant: acquiring a lock that this instance already holds raises
    LockError rather than deadlocking.
    """

    def __init__(self, resource: str | Path, timeout: float = DEFAULT_TIMEOUT):
        self.resource = Path(resource)
        self.timeout = timeout
        self._fd: int | None = None

    @property
    def lock_path(self) -> Path:
        return self.resource.parent / f"{self.resource.name}.lock"

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Block until the lock is held or the timeout elapses."""
        if self._fd is not None:
            raise LockError(f"Lock on {self.resource} is already held by this caller")

        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(self.lock_path), os.O_CREAT | os.O_RDWR, 0o644)
        except OSError as e:
            raise LockError(f"Cannot open lock file {self.lock_path}: {e}") from e

        deadline = time.monotonic() + self.timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    os.close(fd)
                    raise LockTimeout(f"Timed out after {self.timeout}s waiting for lock on {self.resource}")
                time.sleep(_POLL_INTERVAL)
            except OSError as e:
                os.close(fd)
                raise LockError(f"Cannot lock {self.lock_path}: {e}") from e

        self._fd = fd
        logger.debug("Acquired lock %s", self.lock_path)

    def release(self) -> None:
        """Release the lock. Never raises; a no-op when the lock is not held."""
        fd, self._fd = self._fd, None
        if fd is None:
            return
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        except OSError as e:
            # Closing the descriptor below drops the lock anyway.
            logger.warning("Unlock of %s failed: %s", self.lock_path, e)
        try:
            os.close(fd)
        except OSError as e:
            logger.warning("Closing lock file %s failed: %s", self.lock_path, e)
        logger.debug("Released lock %s", self.lock_path)

    def __enter__(self) -> StateLock:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


def with_lock(resource: str | Path, body: Callable[[], T], timeout: float = DEFAULT_TIMEOUT) -> T:
    """Run ``body`` while holding the lock on ``resource`` and return its result.

    The lock is released on every exit path; an exception from ``body`` is
    propagated unchanged.
    """
    with StateLock(resource, timeout=timeout):
        return body()
