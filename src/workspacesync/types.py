"""Shared types for workspace sync.

This module provides:
- Provider, ConflictResolve, SyncDirection: configuration enums
- SchedulerPhase: lifecycle phase of a SyncScheduler
- SyncResult: outcome of one transfer-tool invocation
- ResolvedSyncParams: effective parameters for one sync attempt
- SyncStatus: snapshot returned by SyncScheduler.status()
- WorkspaceSyncError, ConfigError: exception classes
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


class Provider(str, Enum):
    """Cloud storage provider backing the remote side of the sync."""

    OFF = "off"
    DROPBOX = "dropbox"
    GDRIVE = "gdrive"
    ONEDRIVE = "onedrive"
    S3 = "s3"
    CUSTOM = "custom"


class ConflictResolve(str, Enum):
    """Which side wins when both sides changed the same file."""

    NEWER = "newer"
    LOCAL = "local"
    REMOTE = "remote"


class SyncDirection(str, Enum):
    """Direction of a one-way sync."""

    PUSH = "push"  # local -> remote
    PULL = "pull"  # remote -> local


class SchedulerPhase(str, Enum):
    """Lifecycle phase of a SyncScheduler.

    STOPPED: no run context (never started, or stopped).
    IDLE: started, but provider is off or periodic sync is disabled.
    SCHEDULED: a timer is armed for the next attempt.
    RUNNING: an attempt is in flight.
    """

    STOPPED = "stopped"
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"


class WorkspaceSyncError(Exception):
    """Base exception for workspace sync errors."""


class ConfigError(WorkspaceSyncError):
    """Invalid sync configuration."""


@dataclass(frozen=True)
class SyncResult:
    """Result of one rclone invocation.

    Attributes:
        ok: True if the tool exited successfully.
        error: Error text reported by the tool (None on success).
        files_transferred: Number of files transferred, when reported.
    """

    ok: bool
    error: str | None = None
    files_transferred: int | None = None


@dataclass(frozen=True)
class ResolvedSyncParams:
    """Effective sync parameters after merging config, defaults and paths."""

    remote_name: str
    remote_path: str
    local_path: Path
    config_path: Path
    conflict_resolve: ConflictResolve
    exclude: tuple[str, ...]
    copy_symlinks: bool
    interval: int
    on_session_start: bool
    on_session_end: bool

    @property
    def remote(self) -> str:
        """Get the rclone remote spec (e.g. "cloud:workspace-share")."""
        return f"{self.remote_name}:{self.remote_path}"


@dataclass(frozen=True)
class SyncStatus:
    """Point-in-time copy of a scheduler's sync history.

    Attributes:
        running: Whether the periodic loop is active.
        last_sync_at: When the most recent attempt completed.
        last_sync_ok: Outcome of the most recent attempt (None if never run).
        sync_count: Number of attempts recorded.
        error_count: Number of failed attempts recorded.
    """

    running: bool
    last_sync_at: datetime | None
    last_sync_ok: bool | None
    sync_count: int
    error_count: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "running": self.running,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "last_sync_ok": self.last_sync_ok,
            "sync_count": self.sync_count,
            "error_count": self.error_count,
        }
