"""Provider listing every file in the Downloads directory."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from safesweep.models.item import Category, CleanableItem
from safesweep.models.provider import ScanProvider
from safesweep.utils import xdg_config_home

log = logging.getLogger(__name__)


def downloads_dir() -> Path | None:
    """Resolve the user's Downloads directory.

    Reads ``XDG_DOWNLOAD_DIR`` from ``user-dirs.dirs``, falls back to
    ``~/Downloads``. Returns *None* when the directory does not exist.
    """
    dirs_file = xdg_config_home() / "user-dirs.dirs"
    downloads = None

    if dirs_file.is_file():
        try:
            text = dirs_file.read_text()
            match = re.search(r'^XDG_DOWNLOAD_DIR="(.+)"', text, re.MULTILINE)
            if match:
                downloads = Path(match.group(1).replace("$HOME", str(Path.home())))
        except OSError:
            log.debug("Cannot read %s", dirs_file)

    if downloads is None:
        downloads = Path.home() / "Downloads"

    return downloads if downloads.is_dir() else None


class DownloadsProvider(ScanProvider):
    """Offers the regular files under Downloads.

    These are user files, so they are never selected by default; the
    provider mostly exists to feed duplicate detection.
    """

    id = "downloads"
    name = "Downloads"
    description = "Files in the Downloads directory, checked for duplicate copies"
    category = Category.USER_FILES
    sort_order = 70

    def __init__(self, root: Path | None = None) -> None:
        self._root = root

    def _downloads(self) -> Path | None:
        if self._root is not None:
            return self._root if self._root.is_dir() else None
        return downloads_dir()

    @property
    def unavailable_reason(self) -> str | None:
        if self._downloads() is None:
            return "Downloads directory not found"
        return None

    def scan(self, options, progress, cancel) -> list[CleanableItem]:
        root = self._downloads()
        items: list[CleanableItem] = []
        if root is None:
            return items

        for dirpath, dirnames, filenames in os.walk(root, onerror=lambda e: self.warn(str(e))):
            dirnames[:] = sorted(d for d in dirnames if not options.is_excluded(os.path.join(dirpath, d)))
            for filename in sorted(filenames):
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
                if path.is_symlink() or not path.is_file():
                    continue
                items.append(self.make_item(path, st.st_size, f"Download: {filename}", mtime=st.st_mtime))

        return items
