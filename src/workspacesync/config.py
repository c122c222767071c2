"""Configuration for workspace sync.

This module provides:
- SyncConfig: immutable sync configuration with per-provider credentials
- get_state_dir / get_config_file: per-user state locations
- load_sync_config / save_sync_config: JSON persistence
- resolve_sync_params: merge config, defaults and workspace paths
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from workspacesync.log import get_tagged_logger
from workspacesync.types import (
    ConfigError,
    ConflictResolve,
    Provider,
    ResolvedSyncParams,
)

logger = get_tagged_logger(logging.getLogger(__name__))

STATE_DIR_ENV = "WORKSPACE_SYNC_STATE_DIR"

DEFAULT_REMOTE_NAME = "cloud"
DEFAULT_REMOTE_PATH = "workspace-share"
DEFAULT_LOCAL_PATH = "shared"
DEFAULT_EXCLUDES: tuple[str, ...] = (
    ".git/**",
    "node_modules/**",
    "__pycache__/**",
    ".venv/**",
    "venv/**",
    "*.log",
    ".env*",
    ".DS_Store",
    "Thumbs.db",
    "*.tmp",
    "*.swp",
    "*~",
)


@dataclass(frozen=True)
class S3Settings:
    """Credentials for S3-compatible storage (AWS, R2, MinIO, ...)."""

    endpoint: str | None = None
    bucket: str | None = None
    region: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None


@dataclass(frozen=True)
class DropboxSettings:
    """Dropbox OAuth settings. token is rclone's JSON token blob."""

    app_folder: bool = False
    app_key: str | None = None
    app_secret: str | None = None
    token: str | None = None


@dataclass(frozen=True)
class GDriveSettings:
    """Google Drive settings."""

    token: str | None = None
    team_drive: str | None = None
    root_folder_id: str | None = None


@dataclass(frozen=True)
class OneDriveSettings:
    """OneDrive settings. drive_type is personal, business or sharepoint."""

    token: str | None = None
    drive_id: str | None = None
    drive_type: str | None = None


@dataclass(frozen=True)
class CustomSettings:
    """Any rclone backend, configured by type name and raw options."""

    rclone_type: str
    rclone_options: dict[str, str] = field(default_factory=dict)


_SETTINGS_TYPES: dict[str, type] = {
    "s3": S3Settings,
    "dropbox": DropboxSettings,
    "gdrive": GDriveSettings,
    "onedrive": OneDriveSettings,
    "custom": CustomSettings,
}

_BOOL_FIELDS = ("on_session_start", "on_session_end", "copy_symlinks")
_STR_FIELDS = ("remote_path", "local_path", "remote_name", "config_path")


@dataclass(frozen=True)
class SyncConfig:
    """Workspace sync configuration.

    Immutable for the lifetime of one scheduler run.

    Attributes:
        provider: Cloud provider, or None/OFF when sync is disabled.
        remote_path: Folder on the remote side.
        local_path: Subdirectory of the workspace to sync.
        interval: Background sync interval in seconds (0 disables it).
        on_session_start: Sync when a session starts (used by host hooks).
        on_session_end: Sync when a session ends (used by host hooks).
        remote_name: Name of the rclone remote.
        config_path: Path to rclone.conf (default under the state dir).
        conflict_resolve: Conflict policy passed to rclone bisync.
        exclude: Glob patterns excluded from sync (None means defaults).
        copy_symlinks: Follow symlinks instead of skipping them.
    """

    provider: Provider | None = None
    remote_path: str | None = None
    local_path: str | None = None
    interval: int = 0
    on_session_start: bool = False
    on_session_end: bool = False
    remote_name: str | None = None
    config_path: str | None = None
    conflict_resolve: ConflictResolve = ConflictResolve.NEWER
    exclude: tuple[str, ...] | None = None
    copy_symlinks: bool = False
    s3: S3Settings | None = None
    dropbox: DropboxSettings | None = None
    gdrive: GDriveSettings | None = None
    onedrive: OneDriveSettings | None = None
    custom: CustomSettings | None = None

    @property
    def is_enabled(self) -> bool:
        """Check if a provider is configured."""
        return self.provider is not None and self.provider != Provider.OFF

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SyncConfig:
        """Build a config from a JSON-style mapping.

        Args:
            data: Mapping with snake_case keys matching the field names.

        Returns:
            The parsed SyncConfig.

        Raises:
            ConfigError: If a value has the wrong type or an unknown enum value.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown sync config keys: %s", ", ".join(unknown))

        kwargs: dict[str, Any] = {k: v for k, v in data.items() if k in known}

        provider = kwargs.get("provider")
        if not provider:
            kwargs["provider"] = None
        else:
            try:
                kwargs["provider"] = Provider(provider)
            except ValueError:
                raise ConfigError(f"Unknown provider: {provider!r}") from None

        if "conflict_resolve" in kwargs:
            value = kwargs["conflict_resolve"]
            try:
                kwargs["conflict_resolve"] = ConflictResolve(value)
            except ValueError:
                raise ConfigError(f"Unknown conflict_resolve policy: {value!r}") from None

        if "interval" in kwargs:
            try:
                kwargs["interval"] = int(kwargs["interval"] or 0)
            except (TypeError, ValueError):
                raise ConfigError(f"Invalid interval: {kwargs['interval']!r}") from None

        for name in _BOOL_FIELDS:
            if name in kwargs and not isinstance(kwargs[name], bool):
                raise ConfigError(f"{name} must be true or false, got {kwargs[name]!r}")

        for name in _STR_FIELDS:
            value = kwargs.get(name)
            if value is not None and not isinstance(value, str):
                raise ConfigError(f"{name} must be a string, got {value!r}")

        if kwargs.get("exclude") is not None:
            exclude = kwargs["exclude"]
            if isinstance(exclude, str) or not all(isinstance(p, str) for p in exclude):
                raise ConfigError("exclude must be a list of glob patterns")
            kwargs["exclude"] = tuple(exclude)

        for name, settings_type in _SETTINGS_TYPES.items():
            block = kwargs.get(name)
            if block is None:
                continue
            if not isinstance(block, Mapping):
                raise ConfigError(f"{name} settings must be an object")
            try:
                kwargs[name] = settings_type(**block)
            except TypeError as e:
                raise ConfigError(f"Invalid {name} settings: {e}") from None

        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict (None values dropped)."""
        result: dict[str, Any] = {}
        for key, value in asdict(self).items():
            if value is None:
                continue
            if isinstance(value, Provider | ConflictResolve):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            result[key] = value
        return result


def get_state_dir() -> Path:
    """Get the state directory for workspace sync.

    Returns:
        $WORKSPACE_SYNC_STATE_DIR if set, otherwise ~/.workspace-sync.
    """
    override = os.environ.get(STATE_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".workspace-sync"


def get_config_file() -> Path:
    """Get the path to the sync config file."""
    return get_state_dir() / "config.json"


def load_sync_config(path: Path | None = None) -> SyncConfig:
    """Load sync configuration from a JSON file.

    A missing file yields a disabled configuration.
    """
    config_file = path or get_config_file()
    if not config_file.exists():
        return SyncConfig()
    try:
        data = json.loads(config_file.read_text())
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_file}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file} must contain a JSON object")
    return SyncConfig.from_dict(data)


def save_sync_config(config: SyncConfig, path: Path | None = None) -> None:
    """Save sync configuration to a JSON file."""
    config_file = path or get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config.to_dict(), indent=2))


def resolve_sync_params(
    config: SyncConfig,
    workspace_dir: Path | str,
    state_dir: Path | str | None = None,
) -> ResolvedSyncParams:
    """Merge a sync config with defaults and workspace paths.

    Args:
        config: The sync configuration.
        workspace_dir: Workspace root; local_path is resolved against it.
        state_dir: State directory holding the default rclone config.

    Returns:
        Effective parameters for a sync attempt.
    """
    remote_name = config.remote_name or DEFAULT_REMOTE_NAME
    remote_path = (config.remote_path or DEFAULT_REMOTE_PATH).strip("/")

    # S3 remotes address a bucket first
    if config.provider == Provider.S3 and config.s3 and config.s3.bucket:
        remote_path = f"{config.s3.bucket}/{remote_path}"

    local_path = Path(workspace_dir) / (config.local_path or DEFAULT_LOCAL_PATH)

    if config.config_path:
        config_path = Path(config.config_path).expanduser()
    else:
        base = Path(state_dir) if state_dir is not None else get_state_dir()
        config_path = base / ".config" / "rclone" / "rclone.conf"

    exclude = config.exclude if config.exclude is not None else DEFAULT_EXCLUDES

    return ResolvedSyncParams(
        remote_name=remote_name,
        remote_path=remote_path,
        local_path=local_path,
        config_path=config_path,
        conflict_resolve=config.conflict_resolve,
        exclude=tuple(exclude),
        copy_symlinks=config.copy_symlinks,
        interval=max(config.interval, 0),
        on_session_start=config.on_session_start,
        on_session_end=config.on_session_end,
    )
