"""Scheduler for background workspace sync.

This module provides:
- SyncScheduler: periodic rclone bisync with start/stop/status/trigger-now

The loop is a chain of one-shot APScheduler jobs: each attempt arms the
next one only after it has finished, so attempts never overlap and the
gap between attempts is the interval plus the attempt's own runtime.
Immediate triggers share the same in-flight lock as scheduled attempts.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from workspacesync.executor import RunContext, SyncExecutor
from workspacesync.locks import clear_stale_locks
from workspacesync.log import get_tagged_logger
from workspacesync.rclone import Rclone
from workspacesync.types import SchedulerPhase, SyncStatus

if TYPE_CHECKING:
    from apscheduler.job import Job

    from workspacesync.config import SyncConfig
    from workspacesync.executor import TransferTool
    from workspacesync.log import TaggedLogger
    from workspacesync.types import SyncResult

logger = get_tagged_logger(logging.getLogger(__name__))

INITIAL_DELAY_SECONDS = 5.0
MIN_INTERVAL_SECONDS = 60
JOB_ID = "workspace_sync"


class SyncScheduler:
    """Runs a sync attempt every interval until stopped.

    Each instance owns its own history (counters, last outcome), so several
    schedulers can serve independent workspaces in one process. stop() ends
    the loop but keeps the history.

    Usage:
        scheduler = SyncScheduler()
        scheduler.start(config, workspace_dir, state_dir)

        scheduler.status()            # snapshot of the sync history
        scheduler.trigger_immediate_sync()

        scheduler.stop()
    """

    def __init__(
        self,
        transfer: TransferTool | None = None,
        lock_dir: Path | None = None,
        grace_delay: float = INITIAL_DELAY_SECONDS,
        min_interval: int = MIN_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the scheduler.

        Args:
            transfer: Sync tool to drive (default: Rclone()).
            lock_dir: Directory swept for stale locks (default: rclone's cache).
            grace_delay: Seconds between start() and the first attempt.
            min_interval: Lower bound for the configured interval in seconds.
        """
        self._executor = SyncExecutor(transfer or Rclone(), lock_dir)
        self._lock_dir = lock_dir
        self._grace_delay = grace_delay
        self._min_interval = min_interval

        # Guards everything below
        self._lock = threading.Lock()
        # Held for the duration of an attempt
        self._attempt_lock = threading.Lock()

        # Active run
        self._context: RunContext | None = None
        self._running = False
        self._interval = 0
        self._scheduler: BackgroundScheduler | None = None
        self._pending_job: Job | None = None
        self._in_flight = False

        # History, kept across stop()/start()
        self._last_sync_at: datetime | None = None
        self._last_sync_ok: bool | None = None
        self._sync_count = 0
        self._error_count = 0
        self._has_successful_sync = False

    @property
    def interval_ms(self) -> int:
        """Get the effective interval in milliseconds (0 when not running)."""
        return self._interval * 1000

    @property
    def has_successful_sync(self) -> bool:
        """Check if any attempt has ever succeeded."""
        return self._has_successful_sync

    @property
    def phase(self) -> SchedulerPhase:
        """Get the current lifecycle phase."""
        with self._lock:
            if self._context is None:
                return SchedulerPhase.STOPPED
            if self._in_flight:
                return SchedulerPhase.RUNNING
            if self._running:
                return SchedulerPhase.SCHEDULED
            return SchedulerPhase.IDLE

    def start(
        self,
        config: SyncConfig,
        workspace_dir: Path | str,
        state_dir: Path | str | None = None,
        logger: logging.Logger | TaggedLogger | None = None,
    ) -> None:
        """Start periodic sync, replacing any previous run.

        Args:
            config: Sync configuration for this run.
            workspace_dir: Workspace root directory.
            state_dir: State directory (holds the default rclone config).
            logger: Logger for sync messages (default: workspacesync logger).
        """
        self.stop()

        log = get_tagged_logger(logger)
        context = RunContext(
            config=config,
            workspace_dir=Path(workspace_dir),
            state_dir=Path(state_dir) if state_dir is not None else None,
            logger=log,
        )
        with self._lock:
            self._context = context

        if not config.is_enabled:
            log.info("Workspace sync not configured")
            return

        # A previous process may have died mid-sync
        clear_stale_locks(log, self._lock_dir)

        interval = config.interval
        if interval <= 0:
            log.info("Periodic sync disabled (interval=0)")
            return

        effective = max(interval, self._min_interval)
        if effective != interval:
            log.warning("Interval increased from %ds to %ds (minimum)", interval, effective)

        log.info("Starting periodic sync every %ds", effective)

        scheduler = BackgroundScheduler(daemon=True)
        scheduler.start()
        with self._lock:
            self._scheduler = scheduler
            self._running = True
            self._interval = effective

        self._arm(context, self._grace_delay)

    def stop(self) -> None:
        """Stop periodic sync.

        Cancels the pending attempt, not one already in flight; that one
        finishes but does not schedule another. Safe to call when stopped.
        """
        with self._lock:
            self._running = False
            self._interval = 0
            self._context = None
            self._pending_job = None
            scheduler, self._scheduler = self._scheduler, None

        if scheduler is not None:
            scheduler.shutdown(wait=False)
            logger.debug("Sync scheduler stopped")

    def status(self) -> SyncStatus:
        """Get a snapshot of the sync history."""
        with self._lock:
            return SyncStatus(
                running=self._running,
                last_sync_at=self._last_sync_at,
                last_sync_ok=self._last_sync_ok,
                sync_count=self._sync_count,
                error_count=self._error_count,
            )

    def trigger_immediate_sync(self, wait: bool = False) -> bool:
        """Run one attempt now, outside the periodic cadence.

        The pending timer is left untouched.

        Args:
            wait: If an attempt is already in flight, wait for it and then
                run; otherwise skip.

        Returns:
            True if an attempt ran and was recorded.
        """
        with self._lock:
            context = self._context
        if context is None:
            return False

        if not self._attempt_lock.acquire(blocking=wait):
            context.logger.info("Sync already in progress, skipping immediate sync")
            return False
        try:
            return self._attempt(context)
        finally:
            self._attempt_lock.release()

    def _arm(self, context: RunContext, delay: float) -> None:
        """Schedule the next attempt for context, if its run is still active."""
        with self._lock:
            if context is not self._context or not self._running or self._scheduler is None:
                return
            run_date = datetime.now(UTC) + timedelta(seconds=delay)
            self._pending_job = self._scheduler.add_job(
                self._sync_job,
                trigger=DateTrigger(run_date=run_date),
                args=[context],
                id=JOB_ID,
                name="Workspace sync",
                replace_existing=True,
                misfire_grace_time=None,
            )

    def _sync_job(self, context: RunContext) -> None:
        """Job function for a scheduled attempt."""
        with self._lock:
            # A job left over from a replaced run must not clear the new handle
            if context is self._context:
                self._pending_job = None
        try:
            with self._attempt_lock:
                self._attempt(context)
        except Exception:
            context.logger.exception("Error during scheduled workspace sync")
        finally:
            self._arm(context, self._interval)

    def _attempt(self, context: RunContext) -> bool:
        """Run one attempt and record its outcome. Caller holds _attempt_lock."""
        with self._lock:
            self._in_flight = True
            has_successful_sync = self._has_successful_sync
        try:
            result = self._executor.run(context, has_successful_sync)
        finally:
            with self._lock:
                self._in_flight = False

        if result is None:
            return False
        self._record(result)
        return True

    def _record(self, result: SyncResult) -> None:
        with self._lock:
            self._last_sync_at = datetime.now(UTC)
            self._sync_count += 1
            if result.ok:
                self._last_sync_ok = True
                self._has_successful_sync = True
            else:
                self._last_sync_ok = False
                self._error_count += 1
