"""Provider for the freedesktop thumbnail cache."""

from __future__ import annotations

from pathlib import Path

from safesweep.models.item import Category
from safesweep.models.provider import CacheDirProvider
from safesweep.utils import xdg_cache_home


class ThumbnailsProvider(CacheDirProvider):
    """Offers the size buckets of ~/.cache/thumbnails."""

    @property
    def id(self) -> str:
        return "thumbnails"

    @property
    def name(self) -> str:
        return "Thumbnails"

    @property
    def description(self) -> str:
        return (
            "Cached thumbnail images. File managers and image viewers "
            "will regenerate thumbnails when browsing directories."
        )

    @property
    def category(self) -> Category:
        return Category.THUMBNAILS

    @property
    def sort_order(self) -> int:
        return 20

    def _root(self) -> Path:
        return xdg_cache_home() / "thumbnails"
