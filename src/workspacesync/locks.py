"""Stale rclone bisync lock cleanup.

rclone bisync writes a ``.lck`` file per sync pair into its cache directory
and removes it on exit. A crashed or killed run leaves the file behind and
every later bisync for that pair fails until it is removed.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import logging

    from workspacesync.log import TaggedLogger

LOCK_SUFFIX = ".lck"


def default_lock_dir() -> Path:
    """Get rclone's bisync cache directory for this platform."""
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / "rclone" / "bisync"
    cache_home = os.environ.get("XDG_CACHE_HOME")
    base = Path(cache_home) if cache_home else Path.home() / ".cache"
    return base / "rclone" / "bisync"


def is_lock_error(error: str | None) -> bool:
    """Check if rclone error text points at a held lock file."""
    if not error:
        return False
    return "lock file found" in error or LOCK_SUFFIX in error


def clear_stale_locks(
    logger: logging.Logger | TaggedLogger,
    lock_dir: Path | None = None,
) -> int:
    """Delete leftover bisync lock files.

    Best effort: a missing directory is ignored, and failures to list the
    directory or delete a file are logged at debug level only.

    Args:
        logger: Logger for per-file messages.
        lock_dir: Directory to sweep (default: default_lock_dir()).

    Returns:
        Number of lock files removed.
    """
    lock_dir = lock_dir or default_lock_dir()
    try:
        if not lock_dir.is_dir():
            return 0
        candidates = [p for p in lock_dir.iterdir() if p.name.endswith(LOCK_SUFFIX)]
    except OSError as e:
        logger.debug("Cannot list lock directory %s: %s", lock_dir, e)
        return 0

    removed = 0
    for path in candidates:
        try:
            path.unlink()
        except OSError as e:
            logger.debug("Cannot remove lock file %s: %s", path.name, e)
            continue
        removed += 1
        logger.info("Cleared stale lock: %s", path.name)
    return removed
