"""JSON document helpers: atomic writes and explicit-absence field access.

Every document the store persists goes through write_json_atomic(), so a
reader either sees the previous content or the new content, never a
partially written file, even if the writer is killed mid-write.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from triage_store.errors import DocumentError, WriteError

logger = logging.getLogger(__name__)


class _Missing:
    """Marker for a path that does not exist in a document."""

    _instance: _Missing | None = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def write_json_atomic(path: str | Path, content: Any, indent: int = 2) -> None:
    """Serialize ``content`` and atomically replace ``path`` with it.

    The temp file lives in the destination directory so os.replace() never
    crosses a filesystem boundary. Raises WriteError on any failure; the
    temp file is removed and the previous file is left as it was.
    """
    path = Path(path)
    try:
        data = json.dumps(content, indent=indent, ensure_ascii=False) + "\n"
    except (TypeError, ValueError) as e:
        raise WriteError(f"Cannot serialize document for {path}: {e}") from e

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.tmp.")
    except OSError as e:
        raise WriteError(f"Cannot create temp file next to {path}: {e}") from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        try:
            os.unlink(tmp_path)
        except OSError:
            logger.debug("Temp file %s already gone", tmp_path)
        raise WriteError(f"Atomic write to {path} failed: {e}") from e


def read_json(path: str | Path, default: Any = None) -> Any:
    """Load a JSON document, returning ``default`` when the file does not exist."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return default
    except OSError as e:
        raise DocumentError(f"Cannot read {path}: {e}") from e

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DocumentError(f"{path} is not valid JSON: {e}") from e


def get_field(document: Any, path: str | Sequence[str | int]) -> Any:
    """Return the value at ``path`` or MISSING when any segment is absent.

    ``path`` is either a dotted string ("git.tests.ok") or a sequence of keys
    and list indices. A present value of None, False, 0 or "" is returned
    as-is; only a genuinely absent path yields MISSING.
    """
    segments = path.split(".") if isinstance(path, str) else list(path)
    current = document
    for segment in segments:
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, list):
            try:
                index = int(segment)
            except (TypeError, ValueError):
                return MISSING
            if not -len(current) <= index < len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current
