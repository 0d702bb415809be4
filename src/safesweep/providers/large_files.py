"""Provider listing unusually large files in the home directory."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from safesweep.models.item import Category, CleanableItem
from safesweep.models.provider import ScanProvider
from safesweep.providers.downloads import downloads_dir
from safesweep.settings import DEFAULT_LARGE_FILE_MIN_MB
from safesweep.utils import bytes_to_human

log = logging.getLogger(__name__)


class LargeFilesProvider(ScanProvider):
    """Offers regular files at or above the size threshold, largest first.

    Hidden directories belong to applications and the Downloads directory
    has its own provider, so both are left out of the walk.
    """

    id = "large_files"
    name = "Large Files"
    description = "Files in your home directory above the large-file size threshold"
    category = Category.USER_FILES
    sort_order = 75

    def __init__(self, root: Path | None = None) -> None:
        self._root = root

    @property
    def unavailable_reason(self) -> str | None:
        if not (self._root or Path.home()).is_dir():
            return "Home directory not found"
        return None

    def scan(self, options, progress, cancel) -> list[CleanableItem]:
        root = self._root or Path.home()
        threshold = options.large_file_min_bytes or DEFAULT_LARGE_FILE_MIN_MB * 1024 * 1024
        skipped = downloads_dir() if self._root is None else None
        items: list[CleanableItem] = []

        for dirpath, dirnames, filenames in os.walk(root, onerror=lambda e: self.warn(str(e))):
            dirnames[:] = sorted(
                d
                for d in dirnames
                if not d.startswith(".")
                and not options.is_excluded(os.path.join(dirpath, d))
                and Path(dirpath, d) != skipped
            )
            for filename in filenames:
                if cancel:
                    return items
                path = Path(dirpath, filename)
                if options.is_excluded(path):
                    continue
                try:
                    st = path.lstat()
                except OSError as e:
                    self.warn(f"Cannot stat {path}: {e}")
                    continue
                progress.tick()
                if path.is_symlink() or not path.is_file() or st.st_size < threshold:
                    continue
                items.append(
                    self.make_item(
                        path, st.st_size, f"Large file: {filename} ({bytes_to_human(st.st_size)})", mtime=st.st_mtime
                    )
                )

        items.sort(key=lambda i: (-i.size_bytes, i.locator))
        log.info("Found %d files of at least %s under %s", len(items), bytes_to_human(threshold), root)
        return items
