"""Logging helpers for workspace sync."""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any

LOG_TAG = "[workspace-sync]"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class TaggedLogger(logging.LoggerAdapter):
    """Logger adapter that prefixes every message with LOG_TAG."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        return f"{LOG_TAG} {msg}", kwargs


def get_tagged_logger(base: logging.Logger | TaggedLogger | None = None) -> TaggedLogger:
    """Wrap a logger so its messages carry the workspace-sync tag.

    Args:
        base: Logger to wrap (default: the workspacesync logger).
            An existing TaggedLogger is returned unchanged.
    """
    if isinstance(base, TaggedLogger):
        return base
    return TaggedLogger(base or logging.getLogger("workspacesync"))


def setup_logging(log_path: Path | None = None, level: int = logging.INFO) -> None:
    """Configure logging to stdout and, optionally, a file.

    Args:
        log_path: Path to the log file (None for stdout only).
        level: Level for the workspacesync logger.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("workspacesync")
    root_logger.setLevel(level)

    # Drop handlers from a previous call
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
