"""Scan options, scan results and duplicate groups."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from safesweep.models.item import Category, CleanableItem, ItemDomain
from safesweep.utils import is_within


@dataclass(slots=True)
class ScanOptions:
    """Per-scan knobs handed to the orchestrator and to every provider."""

    provider_ids: list[str] | None = None
    categories: set[Category] | None = None
    custom_paths: list[Path] = field(default_factory=list)
    excluded_paths: list[Path] = field(default_factory=list)
    detect_duplicates: bool | None = None
    duplicate_scope: Path | None = None
    min_age_seconds: int = 86400
    large_file_min_bytes: int | None = None

    def is_excluded(self, path: Path | str) -> bool:
        """Check whether *path* lies under one of the excluded paths."""
        return any(is_within(path, excluded) for excluded in self.excluded_paths)

    def wants(self, category: Category) -> bool:
        return self.categories is None or category in self.categories


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    """Files with identical content; the canonical member is kept."""

    content_hash: str
    size_bytes: int
    members: tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.members) < 2:
            raise ValueError("a duplicate group needs at least two members")

    @property
    def canonical(self) -> str:
        return self.members[0]

    @property
    def redundant(self) -> tuple[str, ...]:
        return self.members[1:]

    @property
    def wasted_bytes(self) -> int:
        return self.size_bytes * (len(self.members) - 1)


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Aggregate result of one scan pass."""

    items: tuple[CleanableItem, ...] = ()
    duplicate_groups: tuple[DuplicateGroup, ...] = ()
    warnings: tuple[str, ...] = ()
    provider_errors: dict[str, str] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration: float = 0.0
    cancelled: bool = False

    @property
    def total_bytes(self) -> int:
        return sum(item.size_bytes for item in self.items)

    @property
    def category_counts(self) -> dict[Category, int]:
        return dict(Counter(item.category for item in self.items))

    @property
    def duplicate_wasted_bytes(self) -> int:
        return sum(g.wasted_bytes for g in self.duplicate_groups)

    def by_category(self, category: Category) -> list[CleanableItem]:
        return [item for item in self.items if item.category is category]

    def file_items(self) -> list[CleanableItem]:
        """Items whose locator is a single regular file."""
        return [
            item for item in self.items
            if item.domain is ItemDomain.FILE and not item.is_directory
        ]

    def get(self, locator: str) -> CleanableItem | None:
        for item in self.items:
            if item.locator == locator:
                return item
        return None
