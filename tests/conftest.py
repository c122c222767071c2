"""Shared fixtures for workspace sync tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.fakes import FakeTransfer
from workspacesync.config import SyncConfig
from workspacesync.types import Provider


@pytest.fixture
def transfer() -> FakeTransfer:
    """Create a fake transfer tool that always succeeds."""
    return FakeTransfer()


@pytest.fixture
def lock_dir(tmp_path: Path) -> Path:
    """Create an empty lock directory."""
    path = tmp_path / "locks"
    path.mkdir()
    return path


@pytest.fixture
def dropbox_config() -> SyncConfig:
    """Create an enabled config with a valid interval."""
    return SyncConfig(provider=Provider.DROPBOX, interval=300)
