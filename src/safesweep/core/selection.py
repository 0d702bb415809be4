"""Caller-owned selection overlay over an immutable scan result."""

from __future__ import annotations

from typing import Iterable, Iterator

from safesweep.core.risk import default_selected
from safesweep.models.item import Category, CleanableItem
from safesweep.models.scan_result import ScanResult


class Selection:
    """Set of selected item locators.

    Items themselves never carry a selection flag, so a scan result can be
    shared across threads while the caller edits its own selection.
    """

    def __init__(self, locators: Iterable[str] = ()) -> None:
        self._selected: set[str] = set(locators)

    @classmethod
    def default_for(cls, result: ScanResult) -> Selection:
        """Pre-select every item whose risk tier is LOW or below."""
        return cls(item.locator for item in result.items if default_selected(item.risk))

    # -- Mutators --

    def select(self, locator: str) -> None:
        self._selected.add(locator)

    def deselect(self, locator: str) -> None:
        self._selected.discard(locator)

    def toggle(self, locator: str) -> bool:
        """Flip one locator and return its new state."""
        if locator in self._selected:
            self._selected.discard(locator)
            return False
        self._selected.add(locator)
        return True

    def select_category(self, result: ScanResult, category: Category, active: bool = True) -> None:
        for item in result.by_category(category):
            if active:
                self._selected.add(item.locator)
            else:
                self._selected.discard(item.locator)

    def clear(self) -> None:
        self._selected.clear()

    # -- Queries --

    def items(self, result: ScanResult) -> list[CleanableItem]:
        """Selected items, in scan order."""
        return [item for item in result.items if item.locator in self._selected]

    def total_bytes(self, result: ScanResult) -> int:
        return sum(item.size_bytes for item in self.items(result))

    def __contains__(self, locator: object) -> bool:
        return locator in self._selected

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._selected))

    def __len__(self) -> int:
        return len(self._selected)
