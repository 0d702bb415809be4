"""Base scan provider interface."""

from __future__ import annotations

import logging
import stat
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from safesweep.models.item import Category, CleanableItem, ItemDomain, RiskTier
from safesweep.models.scan_result import ScanOptions
from safesweep.utils import dir_info

if TYPE_CHECKING:
    from safesweep.core.progress import CancellationToken, ProviderProgress

log = logging.getLogger(__name__)


class ScanProvider(ABC):
    """Base class for all scan providers.

    A provider enumerates candidate items for one resource domain. It
    never deletes anything itself except through :meth:`remove_item`,
    which the orchestrator only calls for non-path items after a verified
    backup.
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique identifier, e.g. 'tmp_files'."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name, e.g. 'Temporary Files'."""

    @property
    @abstractmethod
    def description(self) -> str:
        """What this provider finds and why removing it is reasonable."""

    @property
    @abstractmethod
    def category(self) -> Category:
        """Primary category of the items this provider yields."""

    @property
    def domain(self) -> ItemDomain:
        return self.category.domain

    @property
    def sort_order(self) -> int:
        """Display order (lower = first). Default 50."""
        return 50

    @property
    def unavailable_reason(self) -> str | None:
        """Why this provider cannot work on this system, or None if supported."""
        return None

    def is_available(self) -> bool:
        return self.unavailable_reason is None

    @abstractmethod
    def scan(
        self,
        options: ScanOptions,
        progress: ProviderProgress,
        cancel: CancellationToken,
    ) -> list[CleanableItem]:
        """Enumerate candidate items. MUST NOT delete anything.

        Per-entry failures are recorded with :meth:`warn` rather than raised.
        """

    @property
    def warnings(self) -> list[str]:
        """Per-entry problems recorded during the last scan."""
        return self.__dict__.setdefault("_warnings", [])

    def reset_warnings(self) -> None:
        self.__dict__["_warnings"] = []

    def warn(self, message: str) -> None:
        log.debug("%s: %s", self.id, message)
        self.warnings.append(message)

    # Hooks for items whose locator is not a filesystem path.

    def snapshot_item(self, item: CleanableItem) -> bytes:
        """Serialize a non-path item so it can be backed up."""
        raise NotImplementedError(f"{self.id} cannot snapshot {item.locator}")

    def remove_item(self, item: CleanableItem) -> None:
        """Destroy a non-path item."""
        raise NotImplementedError(f"{self.id} cannot remove {item.locator}")

    def restore_item(self, locator: str, data: bytes) -> None:
        """Recreate a non-path item from its snapshot."""
        raise NotImplementedError(f"{self.id} cannot restore {locator}")

    def make_item(
        self,
        path: Path,
        size: int,
        description: str,
        *,
        category: Category | None = None,
        is_directory: bool = False,
        file_count: int = 1,
        mtime: float | None = None,
        risk_hint: RiskTier | None = None,
        **metadata: object,
    ) -> CleanableItem:
        """Build a CleanableItem for a filesystem path owned by this provider."""
        return CleanableItem(
            locator=str(path),
            size_bytes=size,
            category=category or self.category,
            description=description,
            provider_id=self.id,
            risk_hint=risk_hint,
            last_modified=datetime.fromtimestamp(mtime, timezone.utc) if mtime is not None else None,
            is_directory=is_directory,
            file_count=file_count,
            metadata=metadata,
        )

    def stat_item(
        self,
        path: Path,
        description: str,
        *,
        category: Category | None = None,
        **metadata: object,
    ) -> CleanableItem:
        """Measure a file or directory and build its item.

        A directory's size and file count cover the whole tree, and its
        modification time is the newest of the directory and any file in it.

        Raises:
            OSError: If *path* cannot be stat'ed.
        """
        st = path.lstat()
        if stat.S_ISDIR(st.st_mode):
            info = dir_info(path)
            return self.make_item(
                path,
                info.size,
                description,
                category=category,
                is_directory=True,
                file_count=info.file_count,
                mtime=max(st.st_mtime, info.newest_mtime),
                **metadata,
            )
        return self.make_item(path, st.st_size, description, category=category, mtime=st.st_mtime, **metadata)


class CacheDirProvider(ScanProvider, ABC):
    """Base class for providers that offer the top-level entries of one directory.

    Subclasses only define metadata properties and :meth:`_root`.
    """

    @abstractmethod
    def _root(self) -> Path:
        """Directory whose children are offered for cleaning."""

    def _skip(self, entry: Path) -> bool:
        """Return True for children that must not be offered."""
        return False

    @property
    def _label(self) -> str:
        return self.name

    @property
    def unavailable_reason(self) -> str | None:
        if not self._root().is_dir():
            return f"{self._label} directory not found"
        return None

    def scan(
        self,
        options: ScanOptions,
        progress: ProviderProgress,
        cancel: CancellationToken,
    ) -> list[CleanableItem]:
        root = self._root()
        items: list[CleanableItem] = []

        try:
            children = sorted(root.iterdir())
        except OSError as e:
            self.warn(f"Cannot read {root}: {e}")
            return items

        for child in children:
            if cancel:
                break
            if self._skip(child) or options.is_excluded(child):
                continue
            try:
                item = self.stat_item(child, f"{self._label}: {child.name}")
            except OSError as e:
                self.warn(f"Cannot access {child}: {e}")
            else:
                if item.size_bytes > 0:
                    items.append(item)
            progress.tick()

        return items
