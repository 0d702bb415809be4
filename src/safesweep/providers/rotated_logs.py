"""Provider for rotated and compressed log files in the user's state and cache dirs."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from safesweep.models.item import Category, CleanableItem
from safesweep.models.provider import ScanProvider
from safesweep.utils import xdg_cache_home, xdg_state_home

log = logging.getLogger(__name__)

# app.log.1, app.log.2.gz, app.log.gz, app.log.old
_ROTATED_RE = re.compile(r"\.log(\.\d+)?(\.(gz|xz|bz2|zst))?$|\.log\.old$")
_CURRENT_RE = re.compile(r"\.log$")


def _is_rotated(name: str) -> bool:
    return bool(_ROTATED_RE.search(name)) and not _CURRENT_RE.search(name)


class RotatedLogsProvider(ScanProvider):
    """Offers rotated log files; the current ``*.log`` files are never touched."""

    id = "rotated_logs"
    name = "Rotated Logs"
    description = (
        "Rotated log files (app.log.1, app.log.2.gz, etc.) left behind by "
        "applications. The current log files are kept intact."
    )
    category = Category.LOG_FILES
    sort_order = 35

    def __init__(self, roots: list[Path] | None = None) -> None:
        self._roots = roots

    def _search_roots(self) -> list[Path]:
        if self._roots is not None:
            return self._roots
        return [xdg_state_home(), xdg_cache_home()]

    @property
    def unavailable_reason(self) -> str | None:
        if not any(root.is_dir() for root in self._search_roots()):
            return "No log directories found"
        return None

    def scan(self, options, progress, cancel) -> list[CleanableItem]:
        items: list[CleanableItem] = []

        for root in self._search_roots():
            if not root.is_dir():
                continue
            for dirpath, dirnames, filenames in os.walk(root, onerror=lambda e: self.warn(str(e))):
                dirnames[:] = sorted(d for d in dirnames if not options.is_excluded(os.path.join(dirpath, d)))
                for filename in sorted(filenames):
                    if cancel:
                        return items
                    if not _is_rotated(filename):
                        continue
                    path = Path(dirpath, filename)
                    if options.is_excluded(path):
                        continue
                    try:
                        st = path.lstat()
                        if path.is_symlink() or st.st_size == 0:
                            continue
                        items.append(
                            self.make_item(path, st.st_size, f"Rotated log: {filename}", mtime=st.st_mtime)
                        )
                    except OSError as e:
                        self.warn(f"Cannot access {path}: {e}")
                    progress.tick()

        return items
