"""Tests for sync configuration."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from workspacesync.config import (
    DEFAULT_EXCLUDES,
    S3Settings,
    SyncConfig,
    get_config_file,
    get_state_dir,
    load_sync_config,
    resolve_sync_params,
    save_sync_config,
)
from workspacesync.types import ConfigError, ConflictResolve, Provider


class TestSyncConfig:
    """Tests for SyncConfig class."""

    def test_defaults(self) -> None:
        """Should be disabled with conservative defaults."""
        config = SyncConfig()
        assert config.provider is None
        assert config.interval == 0
        assert config.conflict_resolve == ConflictResolve.NEWER
        assert config.exclude is None
        assert config.copy_symlinks is False
        assert not config.is_enabled

    def test_is_enabled(self) -> None:
        """Should be enabled for any provider except off."""
        assert not SyncConfig(provider=Provider.OFF).is_enabled
        assert SyncConfig(provider=Provider.GDRIVE).is_enabled

    def test_from_dict_minimal(self) -> None:
        """Should accept an empty mapping."""
        config = SyncConfig.from_dict({})
        assert config == SyncConfig()

    def test_from_dict_full_dropbox(self) -> None:
        """Should parse a full dropbox config."""
        config = SyncConfig.from_dict(
            {
                "provider": "dropbox",
                "remote_path": "team-share",
                "local_path": "shared",
                "interval": 300,
                "on_session_start": True,
                "on_session_end": True,
                "remote_name": "cloud",
                "conflict_resolve": "local",
                "exclude": [".git/**"],
                "copy_symlinks": False,
                "dropbox": {
                    "app_folder": True,
                    "app_key": "key",
                    "app_secret": "secret",
                    "token": '{"access_token":"abc"}',
                },
            }
        )
        assert config.provider == Provider.DROPBOX
        assert config.conflict_resolve == ConflictResolve.LOCAL
        assert config.exclude == (".git/**",)
        assert config.dropbox is not None
        assert config.dropbox.app_folder is True
        assert config.dropbox.token == '{"access_token":"abc"}'

    def test_from_dict_s3(self) -> None:
        """Should parse S3 settings."""
        config = SyncConfig.from_dict(
            {
                "provider": "s3",
                "s3": {
                    "endpoint": "https://r2.example.com",
                    "bucket": "my-bucket",
                    "region": "auto",
                    "access_key_id": "AKID",
                    "secret_access_key": "SECRET",
                },
            }
        )
        assert config.s3 == S3Settings(
            endpoint="https://r2.example.com",
            bucket="my-bucket",
            region="auto",
            access_key_id="AKID",
            secret_access_key="SECRET",
        )

    def test_from_dict_empty_provider(self) -> None:
        """Should treat an empty provider as disabled."""
        config = SyncConfig.from_dict({"provider": "", "interval": 300})
        assert config.provider is None
        assert not config.is_enabled

    def test_from_dict_unknown_provider(self) -> None:
        """Should reject unknown providers."""
        with pytest.raises(ConfigError, match="Unknown provider"):
            SyncConfig.from_dict({"provider": "ftp"})

    def test_from_dict_unknown_conflict_policy(self) -> None:
        """Should reject unknown conflict policies."""
        with pytest.raises(ConfigError, match="conflict_resolve"):
            SyncConfig.from_dict({"conflict_resolve": "oldest"})

    def test_from_dict_invalid_interval(self) -> None:
        """Should reject a non-numeric interval."""
        with pytest.raises(ConfigError, match="interval"):
            SyncConfig.from_dict({"interval": "often"})

    @pytest.mark.parametrize("name", ["copy_symlinks", "on_session_start", "on_session_end"])
    @pytest.mark.parametrize("value", ["false", 1, None])
    def test_from_dict_rejects_non_bool_flags(self, name: str, value: object) -> None:
        """Should reject flags that are not JSON booleans."""
        with pytest.raises(ConfigError, match=name):
            SyncConfig.from_dict({"provider": "dropbox", "interval": 300, name: value})

    @pytest.mark.parametrize("name", ["remote_path", "local_path", "remote_name", "config_path"])
    def test_from_dict_rejects_non_string_paths(self, name: str) -> None:
        """Should reject non-string names and paths up front."""
        with pytest.raises(ConfigError, match=name):
            SyncConfig.from_dict({"provider": "dropbox", name: 42})

    def test_from_dict_null_path_uses_default(self, tmp_path: Path) -> None:
        """Should treat a null path as not given."""
        config = SyncConfig.from_dict({"provider": "dropbox", "remote_path": None})
        params = resolve_sync_params(config, tmp_path, tmp_path / "state")
        assert params.remote_path == "workspace-share"

    def test_from_dict_exclude_must_be_list(self) -> None:
        """Should reject a bare string as exclude list."""
        with pytest.raises(ConfigError, match="exclude"):
            SyncConfig.from_dict({"exclude": "*.log"})

    def test_from_dict_invalid_settings_block(self) -> None:
        """Should reject unknown keys inside a provider block."""
        with pytest.raises(ConfigError, match="s3"):
            SyncConfig.from_dict({"s3": {"bucket": "b", "colour": "red"}})

    def test_from_dict_ignores_unknown_keys(self, caplog: pytest.LogCaptureFixture) -> None:
        """Should warn about and ignore unknown top-level keys."""
        config = SyncConfig.from_dict({"provider": "gdrive", "frobnicate": 1})
        assert config.provider == Provider.GDRIVE
        assert "frobnicate" in caplog.text

    def test_to_dict_round_trip(self) -> None:
        """Should serialize to JSON-safe values that parse back."""
        config = SyncConfig(
            provider=Provider.S3,
            interval=600,
            exclude=("*.tmp",),
            s3=S3Settings(bucket="b"),
        )
        data = config.to_dict()
        assert data["provider"] == "s3"
        assert data["conflict_resolve"] == "newer"
        assert data["exclude"] == ["*.tmp"]
        json.dumps(data)
        assert SyncConfig.from_dict(data) == config


class TestConfigFiles:
    """Tests for state dir and config file helpers."""

    def test_state_dir_from_env(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Should honour WORKSPACE_SYNC_STATE_DIR."""
        monkeypatch.setenv("WORKSPACE_SYNC_STATE_DIR", str(tmp_path))
        assert get_state_dir() == tmp_path
        assert get_config_file() == tmp_path / "config.json"

    def test_state_dir_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Should default to ~/.workspace-sync."""
        monkeypatch.delenv("WORKSPACE_SYNC_STATE_DIR", raising=False)
        assert get_state_dir() == Path.home() / ".workspace-sync"

    def test_load_missing_file(self, tmp_path: Path) -> None:
        """Should return a disabled config when the file is absent."""
        config = load_sync_config(tmp_path / "missing.json")
        assert not config.is_enabled

    def test_save_and_load(self, tmp_path: Path) -> None:
        """Should persist config as JSON."""
        path = tmp_path / "nested" / "config.json"
        config = SyncConfig(provider=Provider.ONEDRIVE, interval=900, remote_name="od")
        save_sync_config(config, path)

        assert json.loads(path.read_text())["provider"] == "onedrive"
        assert load_sync_config(path) == config

    def test_load_invalid_json(self, tmp_path: Path) -> None:
        """Should raise ConfigError on malformed JSON."""
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError):
            load_sync_config(path)

    def test_load_non_object(self, tmp_path: Path) -> None:
        """Should raise ConfigError when the JSON is not an object."""
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigError):
            load_sync_config(path)


class TestResolveSyncParams:
    """Tests for resolve_sync_params function."""

    def test_defaults(self, tmp_path: Path) -> None:
        """Should fill in defaults relative to workspace and state dirs."""
        params = resolve_sync_params(
            SyncConfig(provider=Provider.DROPBOX), tmp_path / "ws", tmp_path / "state"
        )
        assert params.remote_name == "cloud"
        assert params.remote_path == "workspace-share"
        assert params.remote == "cloud:workspace-share"
        assert params.local_path == tmp_path / "ws" / "shared"
        assert params.config_path == tmp_path / "state" / ".config" / "rclone" / "rclone.conf"
        assert params.conflict_resolve == ConflictResolve.NEWER
        assert params.exclude == DEFAULT_EXCLUDES
        assert params.copy_symlinks is False

    def test_overrides(self, tmp_path: Path) -> None:
        """Should prefer explicit config values."""
        config = SyncConfig(
            provider=Provider.GDRIVE,
            remote_name="gd",
            remote_path="/projects/a/",
            local_path="docs",
            config_path=str(tmp_path / "rclone.conf"),
            conflict_resolve=ConflictResolve.REMOTE,
            exclude=(),
            copy_symlinks=True,
            interval=120,
            on_session_end=True,
        )
        params = resolve_sync_params(config, tmp_path)
        assert params.remote == "gd:projects/a"
        assert params.local_path == tmp_path / "docs"
        assert params.config_path == tmp_path / "rclone.conf"
        assert params.conflict_resolve == ConflictResolve.REMOTE
        assert params.exclude == ()
        assert params.copy_symlinks is True
        assert params.interval == 120
        assert params.on_session_end is True

    def test_state_dir_fallback(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Should fall back to get_state_dir() when no state dir is given."""
        monkeypatch.setenv("WORKSPACE_SYNC_STATE_DIR", str(tmp_path / "env-state"))
        params = resolve_sync_params(SyncConfig(provider=Provider.DROPBOX), tmp_path)
        assert params.config_path == tmp_path / "env-state" / ".config" / "rclone" / "rclone.conf"

    def test_s3_bucket_prefix(self, tmp_path: Path) -> None:
        """Should prefix the remote path with the S3 bucket."""
        config = SyncConfig(provider=Provider.S3, s3=S3Settings(bucket="my-bucket"))
        params = resolve_sync_params(config, tmp_path, tmp_path)
        assert params.remote == "cloud:my-bucket/workspace-share"

    def test_negative_interval_clamped_to_zero(self, tmp_path: Path) -> None:
        """Should never report a negative interval."""
        params = resolve_sync_params(
            SyncConfig(provider=Provider.DROPBOX, interval=-5), tmp_path, tmp_path
        )
        assert params.interval == 0
