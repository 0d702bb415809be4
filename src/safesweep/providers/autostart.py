"""Provider for broken autostart entries."""

from __future__ import annotations

import configparser
import logging
import shlex
import shutil
from pathlib import Path

from safesweep.models.item import Category, CleanableItem
from safesweep.models.provider import ScanProvider
from safesweep.utils import xdg_config_home

log = logging.getLogger(__name__)

_SECTION = "Desktop Entry"


def _exec_target(desktop_file: Path) -> str | None:
    """Return the program named by the entry's Exec key, or None if it has none."""
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str
    parser.read(desktop_file, encoding="utf-8")
    if not parser.has_option(_SECTION, "Exec"):
        return None
    try:
        argv = shlex.split(parser.get(_SECTION, "Exec"))
    except ValueError:
        return None
    # Skip env wrappers: "env FOO=1 program --flag"
    while argv and (argv[0] == "env" or "=" in argv[0]):
        argv.pop(0)
    return argv[0] if argv else None


def _target_exists(target: str) -> bool:
    if target.startswith("/"):
        return Path(target).exists()
    return shutil.which(target) is not None


class AutostartProvider(ScanProvider):
    """Offers ~/.config/autostart entries whose program is no longer installed."""

    @property
    def id(self) -> str:
        return "autostart"

    @property
    def name(self) -> str:
        return "Broken Autostart Entries"

    @property
    def description(self) -> str:
        return "Login autostart entries that launch a program which no longer exists."

    @property
    def category(self) -> Category:
        return Category.STARTUP_ENTRY

    @property
    def sort_order(self) -> int:
        return 60

    def _autostart_dir(self) -> Path:
        return xdg_config_home() / "autostart"

    @property
    def unavailable_reason(self) -> str | None:
        if not self._autostart_dir().is_dir():
            return "Autostart directory not found"
        return None

    def scan(self, options, progress, cancel) -> list[CleanableItem]:
        items: list[CleanableItem] = []
        try:
            entries = sorted(self._autostart_dir().glob("*.desktop"))
        except OSError as e:
            self.warn(f"Cannot list {self._autostart_dir()}: {e}")
            return items

        for entry in entries:
            if cancel:
                break
            if options.is_excluded(entry):
                continue
            try:
                target = _exec_target(entry)
                st = entry.lstat()
            except (OSError, configparser.Error) as e:
                self.warn(f"Cannot read {entry}: {e}")
                continue
            progress.tick()
            if target is None or _target_exists(target):
                continue
            items.append(
                self.make_item(
                    entry,
                    st.st_size,
                    f"Autostart: {entry.stem} (missing {target})",
                    mtime=st.st_mtime,
                    exec_target=target,
                )
            )
        return items
