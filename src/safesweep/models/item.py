"""Cleanable item, categories and risk tiers."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Any, Mapping


class RiskTier(IntEnum):
    """Ordered risk classification of a cleanable item."""

    SAFE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()


class ItemDomain(Enum):
    """Resource domain an item lives in."""

    FILE = "file"
    REGISTRY = "registry"
    STARTUP = "startup"


class Category(Enum):
    """Closed set of item categories."""

    TEMP_FILES = "temp_files"
    CACHE = "cache"
    LOG_FILES = "log_files"
    TRASH = "trash"
    THUMBNAILS = "thumbnails"
    BROWSER_CACHE = "browser_cache"
    BROWSER_HISTORY = "browser_history"
    BROWSER_COOKIES = "browser_cookies"
    BROWSER_CREDENTIALS = "browser_credentials"
    USER_FILES = "user_files"
    STARTUP_ENTRY = "startup_entry"
    REGISTRY_ENTRY = "registry_entry"
    SYSTEM_FILES = "system_files"

    @property
    def domain(self) -> ItemDomain:
        match self:
            case Category.REGISTRY_ENTRY:
                return ItemDomain.REGISTRY
            case Category.STARTUP_ENTRY:
                return ItemDomain.STARTUP
            case (
                Category.TEMP_FILES
                | Category.CACHE
                | Category.LOG_FILES
                | Category.TRASH
                | Category.THUMBNAILS
                | Category.BROWSER_CACHE
                | Category.BROWSER_HISTORY
                | Category.BROWSER_COOKIES
                | Category.BROWSER_CREDENTIALS
                | Category.USER_FILES
                | Category.SYSTEM_FILES
            ):
                return ItemDomain.FILE

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


@dataclass(frozen=True, slots=True)
class CleanableItem:
    """Single removable unit discovered by a scan provider.

    ``locator`` is the item's identity: an absolute path for file-shaped
    items, or a provider-specific locator string (e.g. a registry key) for
    everything else. Items are immutable; the risk classifier returns an
    enriched copy via :meth:`with_risk` and selection lives in a separate
    :class:`~safesweep.core.selection.Selection` overlay.
    """

    locator: str
    size_bytes: int
    category: Category
    description: str = ""
    provider_id: str = ""
    risk: RiskTier = RiskTier.SAFE
    risk_hint: RiskTier | None = None
    last_modified: datetime | None = None
    is_directory: bool = False
    file_count: int = 1
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if self.size_bytes < 0:
            raise ValueError(f"size_bytes must be >= 0, got {self.size_bytes} for {self.locator}")
        # naive timestamps are local time
        if self.last_modified is not None and self.last_modified.tzinfo is not timezone.utc:
            object.__setattr__(self, "last_modified", self.last_modified.astimezone(timezone.utc))
        if not isinstance(self.metadata, MappingProxyType):
            object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def domain(self) -> ItemDomain:
        return self.category.domain

    @property
    def is_path(self) -> bool:
        """Whether the locator names a filesystem path the engine can touch directly."""
        return self.domain is ItemDomain.FILE or self.locator.startswith("/")

    def with_risk(self, risk: RiskTier) -> CleanableItem:
        """Return a copy carrying the given risk tier."""
        if risk is self.risk:
            return self
        return dataclasses.replace(self, risk=risk)
