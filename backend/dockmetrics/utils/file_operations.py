"""Atomic file writes for the host registry."""

import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class AtomicWriteError(Exception):
    """Raised when an atomic write fails."""

    pass


def atomic_write_json(file_path: Path, data: Any) -> None:
    """Write JSON to ``file_path`` without ever leaving a partial file.

    Content goes to a temp file in the same directory, then replaces the
    target with a single rename.

    Raises:
        AtomicWriteError: If the directory cannot be created or the write fails
    """
    temp_path = file_path.parent / f".{file_path.name}.tmp.{os.getpid()}"
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        temp_path.replace(file_path)
    except (OSError, TypeError, ValueError) as e:
        if temp_path.exists():
            try:
                temp_path.unlink()
            except OSError as cleanup_error:
                logger.error(f"Failed to clean up temp file {temp_path}: {cleanup_error}")
        raise AtomicWriteError(f"Atomic write failed for {file_path}: {e}") from e
