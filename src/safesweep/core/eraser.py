"""Item destruction: plain unlink or three-pass overwrite."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from safesweep.core.risk import requires_secure_erase
from safesweep.errors import CatastrophicIOError, EraseError
from safesweep.models.item import CleanableItem, RiskTier

log = logging.getLogger(__name__)

_CHUNK_SIZE = 65_536  # 64 KB


class SecureEraser:
    """Destroys file-shaped items.

    Below HIGH risk, files are unlinked and directories removed
    bottom-up. At HIGH and above every regular file is first overwritten
    with zeros, then ``0xFF``, then random bytes, syncing between passes.
    """

    def __init__(self, chunk_size: int = _CHUNK_SIZE) -> None:
        self.chunk_size = chunk_size
        self._zeros = bytes(chunk_size)
        self._ones = b"\xff" * chunk_size

    def erase(self, item: CleanableItem, risk: RiskTier | None = None) -> None:
        """Destroy *item*.

        Raises:
            CatastrophicIOError: An overwrite pass failed on a single file.
            EraseError: Anything under the item could not be removed.
        """
        tier = item.risk if risk is None else risk
        secure = requires_secure_erase(tier)
        path = Path(item.locator)

        if not os.path.lexists(path):
            log.debug("Already gone: %s", path)
            return

        if path.is_dir() and not path.is_symlink():
            self._erase_tree(path, secure)
        else:
            self._erase_file(path, secure)
        log.debug("Erased %s (%s)", path, "secure" if secure else "unlink")

    def _erase_file(self, path: Path, secure: bool) -> None:
        if secure and path.is_file() and not path.is_symlink():
            self.overwrite(path)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise EraseError(f"{path}: {e}") from e

    def _erase_tree(self, root: Path, secure: bool) -> None:
        errors: list[str] = []
        directories: list[str] = []

        for dirpath, dirnames, filenames in os.walk(root, topdown=False):
            directories.append(dirpath)
            for name in filenames + [d for d in dirnames if os.path.islink(os.path.join(dirpath, d))]:
                try:
                    self._erase_file(Path(dirpath, name), secure)
                except EraseError as e:
                    errors.append(str(e))

        # deepest first
        directories.sort(key=lambda d: d.count(os.sep), reverse=True)
        for directory in directories:
            try:
                os.rmdir(directory)
            except FileNotFoundError:
                pass
            except OSError as e:
                errors.append(f"{directory}: {e}")

        if os.path.lexists(root):
            detail = "; ".join(errors[:5]) or "directory still present"
            if len(errors) > 5:
                detail += f" (+{len(errors) - 5} more)"
            raise EraseError(f"{root}: {len(errors)} entries could not be removed: {detail}")

    def overwrite(self, path: Path) -> None:
        """Overwrite a file's content in place: zeros, ones, random."""
        try:
            size = path.stat().st_size
            with open(path, "r+b") as f:
                for pattern in (self._zeros, self._ones, None):
                    f.seek(0)
                    remaining = size
                    while remaining > 0:
                        n = min(self.chunk_size, remaining)
                        f.write(os.urandom(n) if pattern is None else pattern[:n])
                        remaining -= n
                    f.flush()
                    os.fsync(f.fileno())
        except OSError as e:
            raise CatastrophicIOError(f"{path}: overwrite failed: {e}") from e
