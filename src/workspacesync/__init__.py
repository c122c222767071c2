"""Workspace sync - background rclone bisync between a workspace and cloud storage."""

from workspacesync.config import (
    CustomSettings,
    DropboxSettings,
    GDriveSettings,
    OneDriveSettings,
    S3Settings,
    SyncConfig,
    get_state_dir,
    load_sync_config,
    resolve_sync_params,
    save_sync_config,
)
from workspacesync.executor import RunContext, SyncExecutor, TransferTool
from workspacesync.locks import clear_stale_locks, default_lock_dir
from workspacesync.log import TaggedLogger, get_tagged_logger, setup_logging
from workspacesync.rclone import Rclone
from workspacesync.scheduler import SyncScheduler
from workspacesync.service import WorkspaceSyncService
from workspacesync.types import (
    ConfigError,
    ConflictResolve,
    Provider,
    ResolvedSyncParams,
    SchedulerPhase,
    SyncDirection,
    SyncResult,
    SyncStatus,
    WorkspaceSyncError,
)

__all__ = [
    # Config
    "CustomSettings",
    "DropboxSettings",
    "GDriveSettings",
    "OneDriveSettings",
    "S3Settings",
    "SyncConfig",
    "get_state_dir",
    "load_sync_config",
    "resolve_sync_params",
    "save_sync_config",
    # Execution
    "Rclone",
    "RunContext",
    "SyncExecutor",
    "SyncScheduler",
    "TransferTool",
    "WorkspaceSyncService",
    # Locks
    "clear_stale_locks",
    "default_lock_dir",
    # Logging
    "TaggedLogger",
    "get_tagged_logger",
    "setup_logging",
    # Types
    "ConfigError",
    "ConflictResolve",
    "Provider",
    "ResolvedSyncParams",
    "SchedulerPhase",
    "SyncDirection",
    "SyncResult",
    "SyncStatus",
    "WorkspaceSyncError",
]
