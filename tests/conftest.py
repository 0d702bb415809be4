"""Shared test fixtures."""

from __future__ import annotations

import os
import time
from pathlib import Path

import pytest

from safesweep.core.progress import CancellationToken, ProgressSink, ProviderProgress

OLD = time.time() - 30 * 86400


@pytest.fixture(autouse=True)
def isolate_home(tmp_path, monkeypatch):
    """Point HOME and every XDG directory into the test's temp dir."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for var, rel in (
        ("XDG_CACHE_HOME", ".cache"),
        ("XDG_CONFIG_HOME", ".config"),
        ("XDG_DATA_HOME", ".local/share"),
        ("XDG_STATE_HOME", ".local/state"),
    ):
        path = home / rel
        path.mkdir(parents=True)
        monkeypatch.setenv(var, str(path))
    return home


@pytest.fixture
def write_file():
    """Create a file with the given content, optionally backdating its mtime."""

    def _write(path: Path, data: bytes | str = b"x", mtime: float | None = OLD) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            data = data.encode()
        path.write_bytes(data)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _write


@pytest.fixture
def scan_args():
    """A (progress, cancel) pair for calling a provider's scan() directly."""
    return ProviderProgress(ProgressSink(), "test", 1, 1, batch_size=1), CancellationToken()
