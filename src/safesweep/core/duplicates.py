"""Content-addressable duplicate file detection.

Two phases keep the expensive content reads bounded:

1. bucket candidates by exact byte length, dropping zero-length files and
   sizes that occur only once;
2. hash the members of each surviving bucket and group them by digest.

Only files that share a size with another file are ever read.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path

from safesweep.core.hashing import file_hash, files_identical
from safesweep.core.progress import CancellationToken
from safesweep.errors import ItemHashError
from safesweep.models.item import CleanableItem, ItemDomain
from safesweep.models.scan_result import DuplicateGroup
from safesweep.utils import is_within

log = logging.getLogger(__name__)

_NO_TIMESTAMP = datetime.max.replace(tzinfo=timezone.utc)


class DuplicateDetector:
    """Finds groups of byte-identical files among scanned candidates."""

    def __init__(self, max_workers: int = 4) -> None:
        self.max_workers = max(1, max_workers)
        self.warnings: list[str] = []
        self._lock = threading.Lock()

    def find_duplicates(
        self,
        root_scope: Path | str | None,
        candidate_items: list[CleanableItem],
        cancel: CancellationToken | None = None,
    ) -> list[DuplicateGroup]:
        """Return duplicate groups among *candidate_items* under *root_scope*.

        Hash failures drop the affected file from its bucket and are
        recorded in :attr:`warnings`; they never abort detection.
        """
        self.warnings = []
        buckets = self._bucket_by_size(root_scope, candidate_items)
        if not buckets:
            return []

        log.debug(
            "Hashing %d files in %d size buckets",
            sum(len(b) for b in buckets.values()),
            len(buckets),
        )

        groups: list[DuplicateGroup] = []
        work = sorted(buckets.items())
        if self.max_workers > 1 and len(work) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(work))) as executor:
                futures = [executor.submit(self._hash_bucket, size, members, cancel) for size, members in work]
                for future in futures:
                    groups.extend(future.result())
        else:
            for size, members in work:
                groups.extend(self._hash_bucket(size, members, cancel))

        groups.sort(key=lambda g: (-g.wasted_bytes, g.content_hash))
        log.info(
            "Found %d duplicate groups wasting %d bytes",
            len(groups),
            sum(g.wasted_bytes for g in groups),
        )
        return groups

    def verify_group(self, group: DuplicateGroup) -> list[str]:
        """Byte-compare each redundant member against the canonical one.

        Returns the redundant members confirmed identical. Members that
        differ or cannot be read are left out and logged.
        """
        confirmed: list[str] = []
        for member in group.redundant:
            try:
                if files_identical(group.canonical, member):
                    confirmed.append(member)
                else:
                    log.warning("Hash collision or concurrent change: %s differs from %s", member, group.canonical)
            except OSError as e:
                log.warning("Cannot compare %s with %s: %s", member, group.canonical, e)
        return confirmed

    @staticmethod
    def _bucket_by_size(
        root_scope: Path | str | None,
        candidate_items: list[CleanableItem],
    ) -> dict[int, list[CleanableItem]]:
        by_size: dict[int, list[CleanableItem]] = {}
        seen: set[str] = set()
        for item in candidate_items:
            if item.domain is not ItemDomain.FILE or item.is_directory:
                continue
            if item.size_bytes == 0 or item.locator in seen:
                continue
            if root_scope is not None and not is_within(item.locator, root_scope):
                continue
            seen.add(item.locator)
            by_size.setdefault(item.size_bytes, []).append(item)
        return {size: members for size, members in by_size.items() if len(members) > 1}

    def _hash_bucket(
        self,
        size: int,
        members: list[CleanableItem],
        cancel: CancellationToken | None,
    ) -> list[DuplicateGroup]:
        if cancel:
            return []

        by_hash: dict[str, list[CleanableItem]] = {}
        for item in members:
            try:
                digest = self._hash(item)
            except ItemHashError as e:
                log.debug("Dropping from duplicate bucket: %s", e)
                with self._lock:
                    self.warnings.append(str(e))
                continue
            by_hash.setdefault(digest, []).append(item)

        groups = []
        for digest, duplicates in by_hash.items():
            if len(duplicates) < 2:
                continue
            duplicates.sort(key=lambda i: (i.last_modified or _NO_TIMESTAMP, i.locator))
            groups.append(
                DuplicateGroup(
                    content_hash=digest,
                    size_bytes=size,
                    members=tuple(i.locator for i in duplicates),
                )
            )
        return groups

    @staticmethod
    def _hash(item: CleanableItem) -> str:
        try:
            return file_hash(item.locator)
        except OSError as e:
            raise ItemHashError(item.locator, e.strerror or str(e)) from e
