"""Cleaning result and backup record dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from safesweep.models.item import Category, CleanableItem


@dataclass(frozen=True, slots=True)
class BackupRecord:
    """Hash-verified copy of an item taken before it was destroyed."""

    source: str
    backup_path: str
    category: Category
    source_hash: str
    backup_hash: str
    created_at: datetime
    is_directory: bool = False
    size_bytes: int = 0
    provider_id: str = ""

    @property
    def verified(self) -> bool:
        return bool(self.source_hash) and self.source_hash == self.backup_hash

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "backup_path": self.backup_path,
            "category": self.category.value,
            "source_hash": self.source_hash,
            "backup_hash": self.backup_hash,
            "created_at": self.created_at.isoformat(),
            "is_directory": self.is_directory,
            "size_bytes": self.size_bytes,
            "provider_id": self.provider_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupRecord:
        return cls(
            source=data["source"],
            backup_path=data["backup_path"],
            category=Category(data["category"]),
            source_hash=data["source_hash"],
            backup_hash=data["backup_hash"],
            created_at=datetime.fromisoformat(data["created_at"]),
            is_directory=data.get("is_directory", False),
            size_bytes=data.get("size_bytes", 0),
            provider_id=data.get("provider_id", ""),
        )


@dataclass(frozen=True, slots=True)
class FailedItem:
    """An item that survived a clean, with the reason it did."""

    item: CleanableItem
    reason: str
    backup: BackupRecord | None = None


@dataclass(slots=True)
class CleaningResult:
    """Result of a cleaning operation."""

    cleaned: list[CleanableItem] = field(default_factory=list)
    failed: list[FailedItem] = field(default_factory=list)
    backups: dict[str, BackupRecord] = field(default_factory=dict)
    cancelled: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration: float = 0.0

    @property
    def total_bytes_freed(self) -> int:
        return sum(item.size_bytes for item in self.cleaned)

    @property
    def success(self) -> bool:
        return not self.failed

    @property
    def files_removed(self) -> int:
        return sum(item.file_count for item in self.cleaned)

    def add_cleaned(self, item: CleanableItem) -> None:
        self.cleaned.append(item)

    def add_failed(self, item: CleanableItem, reason: str, backup: BackupRecord | None = None) -> None:
        self.failed.append(FailedItem(item=item, reason=reason, backup=backup))
