"""rclone adapter for workspace sync.

This module provides:
- Rclone: runs ``rclone bisync`` / ``rclone sync`` as a subprocess
- build_remote_section: rclone.conf section for a SyncConfig's provider
- read_rclone_config / write_rclone_config: rclone.conf access

rclone.conf is an INI file with one section per remote. Only the section
for the configured remote is ever rewritten; other remotes are preserved.
"""

from __future__ import annotations

import configparser
import logging
import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from workspacesync.log import get_tagged_logger
from workspacesync.types import Provider, SyncDirection, SyncResult

if TYPE_CHECKING:
    from workspacesync.config import SyncConfig
    from workspacesync.types import ResolvedSyncParams

logger = get_tagged_logger(logging.getLogger(__name__))

RCLONE_BINARY = "rclone"
DEFAULT_TIMEOUT = 3600.0  # seconds
VERSION_TIMEOUT = 10.0  # seconds

# "Transferred:   3 / 3, 100%" (the file count line of rclone's stats block)
_TRANSFERRED_RE = re.compile(r"Transferred:\s+(\d+)\s*/\s*\d+,")


def read_rclone_config(config_path: Path) -> configparser.ConfigParser:
    """Read an rclone.conf file (missing file yields an empty parser)."""
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    if config_path.exists():
        parser.read(config_path, encoding="utf-8")
    return parser


def write_rclone_config(config_path: Path, parser: configparser.ConfigParser) -> None:
    """Write an rclone.conf file readable by the current user only."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        parser.write(f)
    os.chmod(config_path, 0o600)


def build_remote_section(config: SyncConfig) -> dict[str, str] | None:
    """Build the rclone.conf section for a config's provider.

    Returns:
        Mapping of rclone options, or None when the config carries no
        credentials (the remote is then expected to exist already).
    """
    provider = config.provider
    section: dict[str, str]

    if provider == Provider.DROPBOX:
        dropbox = config.dropbox
        if not dropbox or not dropbox.token:
            return None
        section = {"type": "dropbox", "token": dropbox.token}
        if dropbox.app_key:
            section["client_id"] = dropbox.app_key
        if dropbox.app_secret:
            section["client_secret"] = dropbox.app_secret

    elif provider == Provider.GDRIVE:
        gdrive = config.gdrive
        if not gdrive or not gdrive.token:
            return None
        section = {"type": "drive", "scope": "drive", "token": gdrive.token}
        if gdrive.team_drive:
            section["team_drive"] = gdrive.team_drive
        if gdrive.root_folder_id:
            section["root_folder_id"] = gdrive.root_folder_id

    elif provider == Provider.ONEDRIVE:
        onedrive = config.onedrive
        if not onedrive or not onedrive.token:
            return None
        section = {"type": "onedrive", "token": onedrive.token}
        if onedrive.drive_id:
            section["drive_id"] = onedrive.drive_id
        if onedrive.drive_type:
            section["drive_type"] = onedrive.drive_type

    elif provider == Provider.S3:
        s3 = config.s3
        if not s3 or not s3.access_key_id or not s3.secret_access_key:
            return None
        section = {
            "type": "s3",
            "provider": "AWS" if not s3.endpoint else "Other",
            "env_auth": "false",
            "access_key_id": s3.access_key_id,
            "secret_access_key": s3.secret_access_key,
        }
        if s3.endpoint:
            section["endpoint"] = s3.endpoint
        if s3.region:
            section["region"] = s3.region

    elif provider == Provider.CUSTOM:
        custom = config.custom
        if not custom or not custom.rclone_type:
            return None
        section = {"type": custom.rclone_type}
        section.update({k: str(v) for k, v in custom.rclone_options.items()})

    else:
        return None

    return section


def parse_files_transferred(output: str) -> int | None:
    """Extract the transferred file count from rclone's stats output."""
    matches = _TRANSFERRED_RE.findall(output)
    if not matches:
        return None
    return int(matches[-1])


class Rclone:
    """Transfer tool backed by the rclone binary.

    Usage:
        rclone = Rclone()
        if rclone.is_installed():
            result = rclone.bisync(params, resync=True)
    """

    def __init__(
        self,
        binary: str = RCLONE_BINARY,
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the adapter.

        Args:
            binary: rclone executable name or path.
            timeout: Maximum seconds a sync subprocess may run (None: no limit).
        """
        self._binary = binary
        self._timeout = timeout

    def is_installed(self) -> bool:
        """Check if rclone can be found and runs."""
        if shutil.which(self._binary) is None:
            return False
        try:
            proc = subprocess.run(
                [self._binary, "version"],
                capture_output=True,
                text=True,
                timeout=VERSION_TIMEOUT,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("rclone version check failed: %s", e)
            return False
        return proc.returncode == 0

    def is_configured(self, config_path: Path, remote_name: str) -> bool:
        """Check if rclone.conf defines the given remote."""
        try:
            parser = read_rclone_config(config_path)
        except configparser.Error as e:
            logger.warning("Cannot parse rclone config %s: %s", config_path, e)
            return False
        return parser.has_section(remote_name)

    def ensure_config(self, config: SyncConfig, config_path: Path, remote_name: str) -> None:
        """Write the remote's section to rclone.conf if it differs.

        Idempotent: nothing is written when the section already matches or
        when the config has no credentials for its provider.
        """
        section = build_remote_section(config)
        if section is None:
            return

        parser = read_rclone_config(config_path)
        if parser.has_section(remote_name) and dict(parser[remote_name]) == section:
            return

        if parser.has_section(remote_name):
            parser.remove_section(remote_name)
        parser[remote_name] = section
        write_rclone_config(config_path, parser)
        logger.info("Updated rclone remote %r in %s", remote_name, config_path)

    def bisync(
        self,
        params: ResolvedSyncParams,
        resync: bool = False,
        dry_run: bool = False,
        verbose: bool = False,
    ) -> SyncResult:
        """Run one bidirectional sync pass.

        Args:
            params: Resolved sync parameters.
            resync: Pass --resync to establish a new baseline.
            dry_run: Preview changes without transferring.
            verbose: Ask rclone for verbose output.
        """
        params.local_path.mkdir(parents=True, exist_ok=True)

        cmd = [
            self._binary,
            "bisync",
            str(params.local_path),
            params.remote,
            "--config",
            str(params.config_path),
            "--conflict-resolve",
            params.conflict_resolve.value,
            "--resilient",
            "--recover",
        ]
        cmd.extend(self._common_flags(params, dry_run, verbose))
        if resync:
            cmd.append("--resync")

        return self._run(cmd)

    def sync(
        self,
        params: ResolvedSyncParams,
        direction: SyncDirection,
        dry_run: bool = False,
        verbose: bool = False,
    ) -> SyncResult:
        """Run a one-way sync (push: local to remote, pull: remote to local)."""
        params.local_path.mkdir(parents=True, exist_ok=True)

        local, remote = str(params.local_path), params.remote
        source, dest = (local, remote) if direction == SyncDirection.PUSH else (remote, local)

        cmd = [
            self._binary,
            "sync",
            source,
            dest,
            "--config",
            str(params.config_path),
        ]
        cmd.extend(self._common_flags(params, dry_run, verbose))

        return self._run(cmd)

    def _common_flags(
        self, params: ResolvedSyncParams, dry_run: bool, verbose: bool
    ) -> list[str]:
        flags: list[str] = []
        for pattern in params.exclude:
            flags.extend(["--exclude", pattern])
        if params.copy_symlinks:
            flags.append("--copy-links")
        if dry_run:
            flags.append("--dry-run")
        if verbose:
            flags.append("--verbose")
        return flags

    def _run(self, cmd: list[str]) -> SyncResult:
        """Run an rclone command and convert its exit status."""
        logger.debug("Running command: %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return SyncResult(ok=False, error=f"rclone timed out after {self._timeout:.0f}s")

        output = f"{proc.stdout}\n{proc.stderr}"
        files_transferred = parse_files_transferred(output)

        if proc.returncode == 0:
            return SyncResult(ok=True, files_transferred=files_transferred)

        error = proc.stderr.strip() or proc.stdout.strip() or (
            f"rclone exited with code {proc.returncode}"
        )
        return SyncResult(ok=False, error=error, files_transferred=files_transferred)
