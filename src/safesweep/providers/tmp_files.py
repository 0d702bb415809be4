"""Provider for user-owned temporary files in /tmp."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path

from safesweep.models.item import Category, CleanableItem
from safesweep.models.provider import ScanProvider

log = logging.getLogger(__name__)


class TmpFilesProvider(ScanProvider):
    """Offers user-owned entries in /tmp (and any custom paths) older than the age cutoff."""

    def __init__(self, tmp_dir: Path | None = None) -> None:
        self._tmp_dir = tmp_dir or Path("/tmp")

    @property
    def id(self) -> str:
        return "tmp_files"

    @property
    def name(self) -> str:
        return "Temporary Files"

    @property
    def description(self) -> str:
        return (
            "User-owned temporary files older than one day. "
            "Active applications may still be using recent temp files."
        )

    @property
    def category(self) -> Category:
        return Category.TEMP_FILES

    @property
    def sort_order(self) -> int:
        return 30

    def scan(self, options, progress, cancel) -> list[CleanableItem]:
        items: list[CleanableItem] = []
        cutoff = time.time() - options.min_age_seconds
        uid = os.getuid()

        roots = [(self._tmp_dir, True)] + [(Path(p), False) for p in options.custom_paths]
        for root, owned_only in roots:
            try:
                children = sorted(root.iterdir())
            except OSError as e:
                self.warn(f"Cannot list {root}: {e}")
                continue

            for child in children:
                if cancel:
                    return items
                if options.is_excluded(child):
                    continue
                try:
                    st = child.lstat()
                    if (owned_only and st.st_uid != uid) or st.st_mtime > cutoff:
                        continue
                    item = self.stat_item(child, f"Temp: {child.name}")
                except OSError as e:
                    self.warn(f"Cannot access {child}: {e}")
                    continue
                finally:
                    progress.tick()
                # a directory still being written to is in use
                if item.last_modified is not None and item.last_modified.timestamp() > cutoff:
                    continue
                items.append(item)

        return items
