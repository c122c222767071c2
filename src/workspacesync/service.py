"""Background sync service for a host application.

Wraps a SyncScheduler with the host-facing lifecycle: load config, start
on host startup, stop on host shutdown.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from workspacesync.config import load_sync_config
from workspacesync.log import get_tagged_logger
from workspacesync.scheduler import SyncScheduler

if TYPE_CHECKING:
    from types import TracebackType

    from workspacesync.config import SyncConfig
    from workspacesync.types import SyncStatus

logger = logging.getLogger(__name__)


class WorkspaceSyncService:
    """Host service running background workspace sync.

    Usage:
        with WorkspaceSyncService.from_config_file(workspace_dir) as service:
            ...
            service.status()
    """

    def __init__(
        self,
        config: SyncConfig,
        workspace_dir: Path | str,
        state_dir: Path | str | None = None,
        scheduler: SyncScheduler | None = None,
    ) -> None:
        self._config = config
        self._workspace_dir = Path(workspace_dir)
        self._state_dir = Path(state_dir) if state_dir is not None else None
        self._scheduler = scheduler or SyncScheduler()
        self._log = get_tagged_logger(logger)

    @classmethod
    def from_config_file(
        cls,
        workspace_dir: Path | str,
        path: Path | None = None,
        state_dir: Path | str | None = None,
    ) -> WorkspaceSyncService:
        """Create a service from the JSON config file (see load_sync_config)."""
        return cls(load_sync_config(path), workspace_dir, state_dir)

    @property
    def scheduler(self) -> SyncScheduler:
        return self._scheduler

    def start(self) -> None:
        """Start background sync (idle when no provider is configured)."""
        provider = self._config.provider.value if self._config.provider else "not configured"
        self._log.info("service: starting (provider: %s)", provider)

        if not self._config.is_enabled:
            self._log.info("service: sync not configured, idle")
            return

        self._scheduler.start(self._config, self._workspace_dir, self._state_dir, logger)

    def stop(self) -> None:
        """Stop background sync."""
        self._scheduler.stop()
        self._log.info("service stopped")

    def status(self) -> SyncStatus:
        return self._scheduler.status()

    def sync_now(self, wait: bool = True) -> bool:
        """Run a sync attempt right away. See SyncScheduler.trigger_immediate_sync."""
        return self._scheduler.trigger_immediate_sync(wait=wait)

    def __enter__(self) -> WorkspaceSyncService:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.stop()
