"""Single sync attempt.

A SyncExecutor runs one attempt:
1. Skip silently when no run context is active or the provider is off
2. Skip with a warning when rclone is missing or the remote is not configured
3. Run bisync, with --resync when no attempt has succeeded yet
4. Retry once with --resync when rclone asks for it
5. Sweep stale lock files when rclone reports a held lock

Skipped attempts return None and leave the scheduler's counters alone.
Every other outcome, including unexpected exceptions, is returned as a
SyncResult; nothing is raised to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from workspacesync.config import resolve_sync_params
from workspacesync.locks import clear_stale_locks, is_lock_error
from workspacesync.types import SyncResult

if TYPE_CHECKING:
    from workspacesync.config import SyncConfig
    from workspacesync.log import TaggedLogger
    from workspacesync.types import ResolvedSyncParams

# rclone asks for a new baseline with "Must run --resync to recover"
RESYNC_MARKER = "--resync"


class TransferTool(Protocol):
    """Protocol for the external sync tool driven by the executor."""

    def is_installed(self) -> bool:
        """Return True if the tool can be run."""
        ...

    def is_configured(self, config_path: Path, remote_name: str) -> bool:
        """Return True if the config store defines remote_name."""
        ...

    def ensure_config(self, config: SyncConfig, config_path: Path, remote_name: str) -> None:
        """Make the config store reflect config (idempotent)."""
        ...

    def bisync(self, params: ResolvedSyncParams, resync: bool = False) -> SyncResult:
        """Run one bidirectional sync pass."""
        ...


@dataclass(frozen=True)
class RunContext:
    """Everything an attempt needs from the scheduler's active run.

    A new context is created by every SyncScheduler.start(); identity
    comparison tells a continuation whether its run is still current.
    """

    config: SyncConfig
    workspace_dir: Path
    state_dir: Path | None
    logger: TaggedLogger


class SyncExecutor:
    """Runs one sync attempt against a TransferTool."""

    def __init__(self, transfer: TransferTool, lock_dir: Path | None = None) -> None:
        """Initialize the executor.

        Args:
            transfer: The sync tool to drive.
            lock_dir: Directory swept for stale locks (default: rclone's cache).
        """
        self._transfer = transfer
        self._lock_dir = lock_dir

    def run(self, context: RunContext | None, has_successful_sync: bool) -> SyncResult | None:
        """Run one attempt.

        Args:
            context: Active run context, or None when the scheduler is stopped.
            has_successful_sync: Whether any earlier attempt succeeded.

        Returns:
            The attempt's final result, or None if a precondition was not met.
        """
        if context is None:
            return None
        config = context.config
        if not config.is_enabled:
            return None

        log = context.logger

        try:
            if not self._transfer.is_installed():
                log.warning("rclone not installed, skipping periodic sync")
                return None

            params = resolve_sync_params(config, context.workspace_dir, context.state_dir)

            self._transfer.ensure_config(config, params.config_path, params.remote_name)

            if not self._transfer.is_configured(params.config_path, params.remote_name):
                log.warning('rclone not configured for "%s", skipping', params.remote_name)
                return None

            log.info("Running periodic sync: %s", params.remote)

            needs_resync = not has_successful_sync
            result = self._transfer.bisync(params, resync=needs_resync)

            if not result.ok and RESYNC_MARKER in (result.error or "") and not needs_resync:
                log.info("First-time sync detected, running with --resync")
                result = self._transfer.bisync(params, resync=True)

            if result.ok:
                log.info("Periodic sync completed")
            else:
                log.warning("Periodic sync failed: %s", result.error)
                if is_lock_error(result.error):
                    log.info("Clearing lock file for next sync attempt")
                    clear_stale_locks(log, self._lock_dir)

            return result

        except Exception as e:
            log.error("Periodic sync error: %s", e)
            return SyncResult(ok=False, error=str(e))
