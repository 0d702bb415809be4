"""Provider for the user's trash."""

from __future__ import annotations

import logging
from pathlib import Path

from safesweep.models.item import Category, CleanableItem
from safesweep.models.provider import ScanProvider
from safesweep.utils import xdg_data_home

log = logging.getLogger(__name__)


class TrashProvider(ScanProvider):
    """Offers everything in ~/.local/share/Trash (payloads and their .trashinfo files)."""

    id = "trash"
    name = "Trash"
    description = "Files already deleted by the user and waiting in the trash."
    category = Category.TRASH
    sort_order = 10

    def _trash_dir(self) -> Path:
        return xdg_data_home() / "Trash"

    @property
    def unavailable_reason(self) -> str | None:
        if not self._trash_dir().is_dir():
            return "Trash directory not found"
        return None

    def scan(self, options, progress, cancel) -> list[CleanableItem]:
        trash_dir = self._trash_dir()
        items: list[CleanableItem] = []

        for subdir in (trash_dir / "files", trash_dir / "info"):
            if not subdir.is_dir():
                continue
            try:
                children = sorted(subdir.iterdir())
            except OSError as e:
                self.warn(f"Cannot list {subdir}: {e}")
                continue
            for entry in children:
                if cancel:
                    return items
                if options.is_excluded(entry):
                    continue
                try:
                    items.append(self.stat_item(entry, f"Trash: {entry.name}"))
                except OSError as e:
                    self.warn(f"Cannot access {entry}: {e}")
                progress.tick()

        return items
