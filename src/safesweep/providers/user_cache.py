"""Provider for top-level entries of ~/.cache."""

from __future__ import annotations

from pathlib import Path

from safesweep.models.item import Category
from safesweep.models.provider import CacheDirProvider
from safesweep.utils import xdg_cache_home

# Caches in constant use by running applications
_EXCLUDE_DIRS = {
    "fontconfig",
    "icon-cache.kcache",
    "gstreamer-1.0",
    "babl",
    "gegl-0.4",
    "mesa_shader_cache",
    "mesa_shader_cache_db",
}

# Offered by dedicated providers
_PROVIDER_DIRS = {
    "thumbnails",
    "mozilla",
    "chromium",
    "google-chrome",
    "BraveSoftware",
    "microsoft-edge",
    "vivaldi",
    "opera",
    "safesweep",
}


class UserCacheProvider(CacheDirProvider):
    """Offers ~/.cache entries, excluding caches of active apps and those with their own provider."""

    @property
    def id(self) -> str:
        return "user_cache"

    @property
    def name(self) -> str:
        return "User Cache"

    @property
    def description(self) -> str:
        return (
            "Cached files in ~/.cache. Font and shader caches are kept. "
            "Applications regenerate these files as needed."
        )

    @property
    def category(self) -> Category:
        return Category.CACHE

    @property
    def sort_order(self) -> int:
        return 40

    @property
    def _label(self) -> str:
        return "Cache"

    def _root(self) -> Path:
        return xdg_cache_home()

    def _skip(self, entry: Path) -> bool:
        return entry.name in _EXCLUDE_DIRS or entry.name in _PROVIDER_DIRS
