"""Shared utility functions."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import NamedTuple

log = logging.getLogger(__name__)


def _xdg_dir(variable: str, *default: str) -> Path:
    value = os.environ.get(variable)
    return Path(value) if value else Path.home().joinpath(*default)


def xdg_cache_home() -> Path:
    """Return XDG_CACHE_HOME, defaulting to ~/.cache."""
    return _xdg_dir("XDG_CACHE_HOME", ".cache")


def xdg_config_home() -> Path:
    """Return XDG_CONFIG_HOME, defaulting to ~/.config."""
    return _xdg_dir("XDG_CONFIG_HOME", ".config")


def xdg_data_home() -> Path:
    """Return XDG_DATA_HOME, defaulting to ~/.local/share."""
    return _xdg_dir("XDG_DATA_HOME", ".local", "share")


def xdg_state_home() -> Path:
    """Return XDG_STATE_HOME, defaulting to ~/.local/state."""
    return _xdg_dir("XDG_STATE_HOME", ".local", "state")


def is_within(path: Path | str, root: Path | str) -> bool:
    """Check whether *path* is *root* or lies beneath it (lexically)."""
    target = os.path.abspath(path)
    base = os.path.abspath(root)
    return target == base or target.startswith(base.rstrip(os.sep) + os.sep)


class TreeInfo(NamedTuple):
    size: int
    file_count: int
    newest_mtime: float


def dir_info(path: Path | str) -> TreeInfo:
    """Total size, file count and newest file mtime of a directory tree.

    Uses GNU ``find`` (C-speed walk) when available, falling back to
    ``os.scandir`` on systems without it. Symlinks are not followed.
    """
    try:
        return _dir_info_find(str(path))
    except (OSError, ValueError, subprocess.SubprocessError):
        return _dir_info_scandir(path)


def _dir_info_find(path_str: str) -> TreeInfo:
    """Walk a directory tree using GNU find (pure C, no Python per-file overhead)."""
    proc = subprocess.run(
        ["find", path_str, "-type", "f", "-printf", "%s %T@\n"],
        capture_output=True, timeout=60,
    )
    if proc.returncode != 0 and not proc.stdout:
        raise subprocess.SubprocessError(proc.stderr.decode(errors="replace").strip())
    total = count = 0
    newest = 0.0
    for line in proc.stdout.splitlines():
        size, _, mtime = line.partition(b" ")
        total += int(size)
        count += 1
        newest = max(newest, float(mtime))
    return TreeInfo(total, count, newest)


def _dir_info_scandir(path: Path | str) -> TreeInfo:
    """Walk a directory tree using os.scandir (pure Python fallback)."""
    total = count = 0
    newest = 0.0
    stack: list[Path | str] = [path]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                for entry in it:
                    try:
                        if entry.is_file(follow_symlinks=False):
                            st = entry.stat(follow_symlinks=False)
                            total += st.st_size
                            count += 1
                            newest = max(newest, st.st_mtime)
                        elif entry.is_dir(follow_symlinks=False):
                            stack.append(entry.path)
                    except OSError:
                        log.debug("Cannot stat: %s", entry.path)
        except OSError:
            log.debug("Cannot list: %s", current)
    return TreeInfo(total, count, newest)


def bytes_to_human(size_bytes: int) -> str:
    """Convert byte count to a human-readable string."""
    if size_bytes < 0:
        return f"-{bytes_to_human(-size_bytes)}"
    if size_bytes == 0:
        return "0 B"

    units = ("B", "KB", "MB", "GB", "TB")
    value = float(size_bytes)
    for unit in units[:-1]:
        if abs(value) < 1024:
            return f"{value:.1f} {unit}" if unit != "B" else f"{int(value)} B"
        value /= 1024
    return f"{value:.1f} {units[-1]}"


def format_elapsed(seconds: float) -> str:
    """Format an elapsed time as a human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds) // 60
    secs = seconds - minutes * 60
    return f"{minutes}m {secs:.0f}s"
