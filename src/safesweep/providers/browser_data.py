"""Provider for browser caches, history, cookies and saved credentials."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from safesweep.models.item import Category, CleanableItem
from safesweep.models.provider import ScanProvider
from safesweep.utils import xdg_cache_home, xdg_config_home

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class _BrowserLayout:
    """Where one browser keeps each kind of data, relative to a profile."""

    name: str
    profiles_root: str
    cache_root: str
    cache_paths: tuple[str, ...]
    history: tuple[str, ...]
    cookies: tuple[str, ...]
    credentials: tuple[str, ...]
    firefox: bool = False


_CHROMIUM_CACHE = ("Cache", "Code Cache", "GPUCache", "Service Worker/CacheStorage")
_CHROMIUM_HISTORY = ("History", "History-journal", "Visited Links")
_CHROMIUM_COOKIES = ("Cookies", "Cookies-journal", "Network/Cookies", "Network/Cookies-journal")
_CHROMIUM_CREDENTIALS = ("Login Data", "Login Data-journal")


def _chromium(name: str, subdir: str) -> _BrowserLayout:
    return _BrowserLayout(
        name=name,
        profiles_root=subdir,
        cache_root=subdir,
        cache_paths=_CHROMIUM_CACHE,
        history=_CHROMIUM_HISTORY,
        cookies=_CHROMIUM_COOKIES,
        credentials=_CHROMIUM_CREDENTIALS,
    )


_LAYOUTS = (
    _chromium("Chromium", "chromium"),
    _chromium("Google Chrome", "google-chrome"),
    _chromium("Brave", "BraveSoftware/Brave-Browser"),
    _chromium("Microsoft Edge", "microsoft-edge"),
    _chromium("Vivaldi", "vivaldi"),
    _BrowserLayout(
        name="Firefox",
        profiles_root=".mozilla/firefox",
        cache_root="mozilla/firefox",
        cache_paths=("cache2", "startupCache", "OfflineCache"),
        history=("places.sqlite", "places.sqlite-wal", "formhistory.sqlite"),
        cookies=("cookies.sqlite", "cookies.sqlite-wal"),
        credentials=("logins.json", "key4.db"),
        firefox=True,
    ),
)


class BrowserDataProvider(ScanProvider):
    """Offers per-profile browser data for Chromium-family browsers and Firefox.

    Caches are low risk; history and cookies are backed up before removal;
    saved credentials are high risk and securely overwritten.
    """

    id = "browser_data"
    name = "Browser Data"
    description = "Browser caches, browsing history, cookies and saved logins"
    category = Category.BROWSER_CACHE
    sort_order = 45

    def __init__(
        self,
        config_dir: Path | None = None,
        cache_dir: Path | None = None,
        home_dir: Path | None = None,
    ) -> None:
        self._config_dir = config_dir
        self._cache_dir = cache_dir
        self._home_dir = home_dir

    def _profiles_base(self, layout: _BrowserLayout) -> Path:
        if layout.firefox:
            return (self._home_dir or Path.home()) / layout.profiles_root
        return (self._config_dir or xdg_config_home()) / layout.profiles_root

    def _cache_base(self, layout: _BrowserLayout) -> Path:
        return (self._cache_dir or xdg_cache_home()) / layout.cache_root

    def _profiles(self, layout: _BrowserLayout) -> list[Path]:
        base = self._profiles_base(layout)
        if not base.is_dir():
            return []
        profiles = []
        for entry in sorted(base.iterdir()):
            if not entry.is_dir():
                continue
            if layout.firefox:
                if (entry / "prefs.js").exists() or (entry / "times.json").exists():
                    profiles.append(entry)
            elif entry.name == "Default" or entry.name.startswith("Profile "):
                profiles.append(entry)
        return profiles

    @property
    def unavailable_reason(self) -> str | None:
        if not any(self._profiles_base(layout).is_dir() for layout in _LAYOUTS):
            return "No supported browser found"
        return None

    def scan(self, options, progress, cancel) -> list[CleanableItem]:
        items: list[CleanableItem] = []

        for layout in _LAYOUTS:
            try:
                profiles = self._profiles(layout)
            except OSError as e:
                self.warn(f"Cannot list {layout.name} profiles: {e}")
                continue

            for profile in profiles:
                if cancel:
                    return items
                progress.note(f"Scanning {layout.name} ({profile.name})")
                label = f"{layout.name} ({profile.name})"

                if options.wants(Category.BROWSER_CACHE):
                    cache_dirs = [profile / rel for rel in layout.cache_paths]
                    cache_dirs += [self._cache_base(layout) / profile.name / rel for rel in layout.cache_paths]
                    for path in cache_dirs:
                        self._add(items, path, options, f"{label} cache: {path.name}", Category.BROWSER_CACHE)
                        progress.tick()

                groups = (
                    (Category.BROWSER_HISTORY, layout.history, "history"),
                    (Category.BROWSER_COOKIES, layout.cookies, "cookies"),
                    (Category.BROWSER_CREDENTIALS, layout.credentials, "saved logins"),
                )
                for category, names, noun in groups:
                    if not options.wants(category):
                        continue
                    for rel in names:
                        path = profile / rel
                        self._add(items, path, options, f"{label} {noun}: {path.name}", category)
                        progress.tick()

        return items

    def _add(
        self,
        items: list[CleanableItem],
        path: Path,
        options,
        description: str,
        category: Category,
    ) -> None:
        if options.is_excluded(path) or path.is_symlink() or not path.exists():
            return
        try:
            item = self.stat_item(path, description, category=category)
        except OSError as e:
            self.warn(f"Cannot access {path}: {e}")
            return
        if item.size_bytes > 0:
            items.append(item)
