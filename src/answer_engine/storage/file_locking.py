"""
Module: storage.file_locking

Purpose:
    Cross-platform locked JSON access for the file-backed repository.
    Uses portalocker so several processes grading into the same
    directory serialize their writes.

Key Functions:
    - locked_file: Context manager for locked file access
    - locked_read_json: Read JSON under a shared lock
    - locked_write_json: Replace a JSON document under an exclusive lock
    - locked_read_modify_write_json: Read-modify-write JSON under an
      exclusive lock

Dependencies:
    - portalocker: Cross-platform file locking

Used By:
    - storage.json_store
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Generator

import portalocker

logger = logging.getLogger(__name__)


@contextmanager
def locked_file(
    path: Path,
    mode: str = 'r',
    lock_type: int = portalocker.LOCK_EX,
) -> Generator:
    """
    Context manager for cross-platform locked file access.

    Args:
        path: Path to file.
        mode: File open mode ('r', 'w', 'a', etc.).
        lock_type: Lock type (LOCK_EX for exclusive, LOCK_SH for shared).

    Yields:
        Open file handle with lock held.

    Example:
        >>> with locked_file(path, 'w') as f:
        ...     json.dump(records, f)
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, mode, encoding='utf-8') as f:
        portalocker.lock(f, lock_type)
        try:
            yield f
        finally:
            portalocker.unlock(f)


def locked_read_json(
    path: Path,
    default: Callable[[], Any] = dict,
) -> Any:
    """
    Read a JSON file under a shared lock.

    Returns:
        Parsed JSON, or default() when the file is missing or empty.

    Raises:
        ValueError: If the file holds invalid JSON
    """
    if not path.exists():
        return default()
    with locked_file(path, 'r', portalocker.LOCK_SH) as f:
        content = f.read()
    if not content.strip():
        return default()
    return json.loads(content)


def locked_write_json(path: Path, data: Any) -> None:
    """Replace the JSON document at path; truncation happens under the lock."""
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'a+', encoding='utf-8') as f:
        portalocker.lock(f, portalocker.LOCK_EX)
        try:
            f.seek(0)
            f.truncate()
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
        finally:
            portalocker.unlock(f)


def locked_read_modify_write_json(
    path: Path,
    modifier: Callable[[Dict[str, Any]], Dict[str, Any]],
    default: Callable[[], Dict[str, Any]] = dict,
) -> Dict[str, Any]:
    """
    Read JSON, apply modifier, write back - all with exclusive lock.

    The file is created under the lock, so two processes starting on a
    missing file cannot overwrite each other's first write.

    Args:
        path: Path to JSON file.
        modifier: Function that takes existing data, returns modified data.
        default: Factory for default data if file doesn't exist.

    Returns:
        The modified data that was written.

    Raises:
        ValueError: If the existing file holds invalid JSON (left untouched)
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    # a+ creates without truncating; the lock is taken before reading
    with open(path, 'a+', encoding='utf-8') as f:
        portalocker.lock(f, portalocker.LOCK_EX)
        try:
            f.seek(0)
            content = f.read()
            existing = json.loads(content) if content.strip() else default()

            modified = modifier(existing)

            f.seek(0)
            f.truncate()
            json.dump(modified, f, indent=2, ensure_ascii=False)
            f.flush()

            logger.debug(f"Updated {path.name}")
            return modified
        finally:
            portalocker.unlock(f)
