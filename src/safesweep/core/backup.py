"""Hash-verified backups taken before destructive operations."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from safesweep.core.hashing import bytes_hash, content_hash, file_hash
from safesweep.errors import BackupIOError, BackupVerificationFailed, RestoreError
from safesweep.models.clean_result import BackupRecord
from safesweep.models.item import CleanableItem

log = logging.getLogger(__name__)

INDEX_FILE = "index.json"


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path, ignore_errors=True)
    else:
        path.unlink(missing_ok=True)


class BackupManager:
    """Creates, restores and purges verified backups under one root directory.

    Layout: one file or directory tree per backup, named
    ``<category>_<ISO 8601 basic UTC timestamp>_<id>``, plus a JSON index
    of every verified record. A backup whose hash does not match its
    source is deleted immediately and never indexed.
    """

    def __init__(self, backup_root: Path) -> None:
        self.backup_root = Path(backup_root)
        self._lock = threading.Lock()

    @property
    def index_path(self) -> Path:
        return self.backup_root / INDEX_FILE

    # -- Backup --

    def backup(self, item: CleanableItem, snapshot: Callable[[], bytes] | None = None) -> BackupRecord:
        """Copy *item* into the backup root and verify the copy.

        Path items are copied from disk. Other items are serialised with
        *snapshot* and the serialised bytes are what gets verified.

        Raises:
            BackupIOError: The source could not be read or the copy written.
            BackupVerificationFailed: The copy does not hash like the source.
        """
        try:
            self.backup_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackupIOError(f"Cannot create backup root {self.backup_root}: {e}") from e

        destination = self._destination_for(item)

        if item.is_path:
            source = Path(item.locator)
            if not os.path.lexists(source):
                raise BackupIOError(f"{item.locator}: source no longer exists")
            try:
                self._copy_content(source, destination)
                source_hash = content_hash(source)
                backup_hash = content_hash(destination)
            except OSError as e:
                _remove_path(destination)
                raise BackupIOError(f"{item.locator}: {e}") from e
            is_dir = source.is_dir() and not source.is_symlink()
        else:
            if snapshot is None:
                raise BackupIOError(f"{item.locator}: no snapshot available for {item.domain.value} item")
            try:
                data = snapshot()
            except Exception as e:
                raise BackupIOError(f"{item.locator}: cannot snapshot item: {type(e).__name__}: {e}") from e
            try:
                self._write_snapshot(data, destination)
                source_hash = bytes_hash(data)
                backup_hash = file_hash(destination)
            except OSError as e:
                _remove_path(destination)
                raise BackupIOError(f"{item.locator}: {e}") from e
            is_dir = False

        record = BackupRecord(
            source=item.locator,
            backup_path=str(destination),
            category=item.category,
            source_hash=source_hash,
            backup_hash=backup_hash,
            created_at=datetime.now(timezone.utc),
            is_directory=is_dir,
            size_bytes=item.size_bytes,
            provider_id=item.provider_id,
        )

        if not record.verified:
            log.error("Backup verification failed for %s (hash mismatch), discarding copy", item.locator)
            _remove_path(destination)
            raise BackupVerificationFailed(f"{item.locator}: backup hash does not match source")

        self._append_index(record)
        log.info("Backup created: %s -> %s", item.locator, destination)
        return record

    def _copy_content(self, source: Path, destination: Path) -> None:
        """Copy a file, symlink or directory tree to *destination*."""
        if source.is_dir() and not source.is_symlink():
            shutil.copytree(source, destination, symlinks=True)
        else:
            shutil.copy2(source, destination, follow_symlinks=False)

    def _write_snapshot(self, data: bytes, destination: Path) -> None:
        with open(destination, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

    def _destination_for(self, item: CleanableItem) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S.%fZ")
        ident = hashlib.sha1(item.locator.encode("utf-8", "surrogateescape")).hexdigest()[:12]
        base = f"{item.category.value}_{stamp}_{ident}"
        candidate = self.backup_root / base
        n = 1
        while os.path.lexists(candidate):
            candidate = self.backup_root / f"{base}-{n}"
            n += 1
        return candidate

    # -- Restore --

    def restore(
        self,
        record: BackupRecord,
        *,
        writer: Callable[[bytes], None] | None = None,
        overwrite: bool = False,
    ) -> None:
        """Copy a backup back to its source location and verify it.

        Non-path records are handed to *writer* as raw bytes instead.

        Raises:
            RestoreError: On unverified records, missing payloads, existing
                targets (unless *overwrite*), copy failures or hash mismatch.
        """
        if not record.verified:
            raise RestoreError(f"{record.source}: refusing to restore from an unverified backup")

        backup = Path(record.backup_path)
        if not os.path.lexists(backup):
            raise RestoreError(f"{record.source}: backup payload {backup} is missing")

        if not record.source.startswith("/"):
            if writer is None:
                raise RestoreError(f"{record.source}: no writer available for a non-path item")
            try:
                data = backup.read_bytes()
            except OSError as e:
                raise RestoreError(f"{record.source}: {e}") from e
            if bytes_hash(data) != record.source_hash:
                raise RestoreError(f"{record.source}: backup payload is corrupt")
            try:
                writer(data)
            except (OSError, NotImplementedError) as e:
                raise RestoreError(f"{record.source}: {e}") from e
            log.info("Restored %s from %s", record.source, backup)
            return

        target = Path(record.source)
        if os.path.lexists(target):
            if not overwrite:
                raise RestoreError(f"{record.source}: target already exists")
            _remove_path(target)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._copy_content(backup, target)
            restored_hash = content_hash(target)
        except OSError as e:
            _remove_path(target)
            raise RestoreError(f"{record.source}: {e}") from e

        if restored_hash != record.source_hash:
            _remove_path(target)
            raise RestoreError(f"{record.source}: restored content does not match the original hash")

        log.info("Restored %s from %s", record.source, backup)

    # -- Index --

    def records(self) -> list[BackupRecord]:
        """Return all indexed backup records, oldest first."""
        with self._lock:
            return self._load_index()

    def purge(self, record: BackupRecord | None = None) -> int:
        """Delete one backup (or all of them when *record* is None).

        Returns the number of records removed.
        """
        with self._lock:
            records = self._load_index()
            if record is None:
                doomed, kept = records, []
            else:
                doomed = [r for r in records if r.backup_path == record.backup_path]
                kept = [r for r in records if r.backup_path != record.backup_path]
            for r in doomed:
                _remove_path(Path(r.backup_path))
            self._save_index(kept)
        log.info("Purged %d backups", len(doomed))
        return len(doomed)

    def _append_index(self, record: BackupRecord) -> None:
        with self._lock:
            records = self._load_index()
            records.append(record)
            self._save_index(records)

    def _load_index(self) -> list[BackupRecord]:
        if not self.index_path.exists():
            return []
        try:
            with open(self.index_path, encoding="utf-8") as f:
                data = json.load(f)
            return [BackupRecord.from_dict(entry) for entry in data.get("backups", [])]
        except (json.JSONDecodeError, OSError, KeyError, ValueError):
            log.exception("Failed to load backup index: %s", self.index_path)
            return []

    def _save_index(self, records: list[BackupRecord]) -> None:
        tmp = self.index_path.with_suffix(".json.tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump({"backups": [r.to_dict() for r in records]}, f, indent=2)
            os.replace(tmp, self.index_path)
        except OSError:
            log.exception("Failed to save backup index: %s", self.index_path)
