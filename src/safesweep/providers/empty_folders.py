"""Provider for directory trees that contain no files."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from safesweep.models.item import Category, CleanableItem
from safesweep.models.provider import ScanProvider

log = logging.getLogger(__name__)

# kept even when empty; their empty children are still offered
_STANDARD_DIRS = frozenset({"Desktop", "Documents", "Downloads", "Music", "Pictures", "Public", "Templates", "Videos"})


class EmptyFoldersProvider(ScanProvider):
    """Offers empty directory trees under the home directory.

    A directory counts as empty when nothing but empty directories lives
    below it. Only the topmost directory of each empty tree is reported,
    since removing it takes the nested ones along. Hidden and excluded
    entries count as content and are never descended into.
    """

    id = "empty_folders"
    name = "Empty Folders"
    description = "Folders in your home directory that contain no files"
    category = Category.USER_FILES
    sort_order = 80

    def __init__(self, root: Path | None = None) -> None:
        self._root = root

    @property
    def unavailable_reason(self) -> str | None:
        if not (self._root or Path.home()).is_dir():
            return "Home directory not found"
        return None

    def scan(self, options, progress, cancel) -> list[CleanableItem]:
        root = self._root or Path.home()
        found: list[Path] = []
        self._walk(root, options, progress, cancel, found, keep=True, standard=_STANDARD_DIRS)

        items: list[CleanableItem] = []
        for path in sorted(found):
            try:
                items.append(self.stat_item(path, f"Empty folder: {path.name}"))
            except OSError as e:
                self.warn(f"Cannot access {path}: {e}")
        log.info("Found %d empty folders under %s", len(items), root)
        return items

    def _walk(
        self,
        directory: Path,
        options,
        progress,
        cancel,
        found: list[Path],
        *,
        keep: bool = False,
        standard: frozenset[str] = frozenset(),
    ) -> bool:
        """Return whether *directory* holds no files.

        Empty child trees are appended to *found* unless *directory* is
        itself empty (and not kept), in which case its parent reports it.
        """
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            self.warn(f"Cannot list {directory}: {e}")
            return False
        progress.tick()

        empty = True
        candidates: list[Path] = []
        for entry in entries:
            if cancel:
                return False
            path = Path(entry.path)
            if entry.name.startswith(".") or options.is_excluded(path) or not entry.is_dir(follow_symlinks=False):
                empty = False
            elif entry.name in standard:
                self._walk(path, options, progress, cancel, found, keep=True)
                empty = False
            elif self._walk(path, options, progress, cancel, found):
                candidates.append(path)
            else:
                empty = False

        if keep or not empty:
            found.extend(candidates)
        return empty
