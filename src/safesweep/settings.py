"""JSON-backed settings store and the engine configuration built from it."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from safesweep.utils import xdg_config_home, xdg_data_home

log = logging.getLogger(__name__)

_SETTINGS_DIR = "safesweep"
_SETTINGS_FILE = "settings.json"

DEFAULT_LARGE_FILE_MIN_MB = 100


class Settings:
    """Persistent settings backed by a JSON file.

    Uses dot-notation keys for nested access:
        settings.get("engine.max_scan_workers")  # reads data["engine"]["max_scan_workers"]
        settings.set("engine.detect_duplicates", True)  # writes + saves
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or (xdg_config_home() / _SETTINGS_DIR / _SETTINGS_FILE)
        self._data: dict[str, Any] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dot-notation key."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a value by dot-notation key and persist to disk."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    def _load(self) -> None:
        """Load settings from disk, gracefully handling errors."""
        if not self._path.exists():
            return
        try:
            self._data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load settings from %s: %s", self._path, e)
            self._data = {}

    def _save(self) -> None:
        """Persist settings to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(self._data, indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self._path, e)


def default_backup_root() -> Path:
    return xdg_data_home() / "safesweep" / "backups"


@dataclass(frozen=True)
class EngineConfig:
    """Explicit configuration owned by the caller and passed to the orchestrator."""

    backup_root: Path = field(default_factory=default_backup_root)
    max_scan_workers: int = 4
    hash_workers: int = 4
    progress_batch_size: int = 500
    detect_duplicates: bool = False
    verify_duplicates_bytewise: bool = True
    large_file_min_bytes: int = DEFAULT_LARGE_FILE_MIN_MB * 1024 * 1024
    enabled_providers: tuple[str, ...] | None = None
    excluded_paths: tuple[Path, ...] = ()
    provider_paths: tuple[Path, ...] = ()
    track_history: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> EngineConfig:
        """Build a config from the ``engine.*`` and ``providers.*`` settings keys."""
        defaults = cls()
        enabled = settings.get("providers.enabled")
        backup_root = settings.get("engine.backup_root")
        large_file_mb = _positive_int(settings, "engine.large_file_min_mb", DEFAULT_LARGE_FILE_MIN_MB)
        return cls(
            backup_root=Path(backup_root).expanduser() if backup_root else defaults.backup_root,
            max_scan_workers=_positive_int(settings, "engine.max_scan_workers", defaults.max_scan_workers),
            hash_workers=_positive_int(settings, "engine.hash_workers", defaults.hash_workers),
            progress_batch_size=_positive_int(settings, "engine.progress_batch_size", defaults.progress_batch_size),
            detect_duplicates=bool(settings.get("engine.detect_duplicates", defaults.detect_duplicates)),
            verify_duplicates_bytewise=bool(
                settings.get("engine.verify_duplicates_bytewise", defaults.verify_duplicates_bytewise)
            ),
            large_file_min_bytes=large_file_mb * 1024 * 1024,
            enabled_providers=tuple(enabled) if enabled is not None else None,
            excluded_paths=tuple(Path(p).expanduser() for p in settings.get("engine.excluded_paths", [])),
            provider_paths=tuple(Path(p).expanduser() for p in settings.get("providers.paths", [])),
            track_history=bool(settings.get("engine.track_history", defaults.track_history)),
        )


def _positive_int(settings: Settings, key: str, default: int) -> int:
    value = settings.get(key, default)
    try:
        value = int(value)
    except (TypeError, ValueError):
        log.warning("Ignoring non-integer setting %s=%r", key, value)
        return default
    if value < 1:
        log.warning("Ignoring non-positive setting %s=%r", key, value)
        return default
    return value
