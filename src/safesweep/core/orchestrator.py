"""Scan and clean orchestration: state machine, fan-out, progress, cancellation."""

from __future__ import annotations

import dataclasses
import logging
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable

from safesweep.core import risk
from safesweep.core.backup import BackupManager
from safesweep.core.duplicates import DuplicateDetector
from safesweep.core.eraser import SecureEraser
from safesweep.core.progress import CancellationToken, ProgressSink, ProviderProgress
from safesweep.core.registry import ProviderRegistry
from safesweep.core.selection import Selection
from safesweep.core.tracker import Tracker
from safesweep.errors import (
    BackupIOError,
    BackupVerificationFailed,
    EraseError,
    InvalidStateError,
    ProviderScanError,
    RestoreError,
)
from safesweep.models.clean_result import BackupRecord, CleaningResult
from safesweep.models.item import CleanableItem, ItemDomain
from safesweep.models.progress import CleanProgress, ScanProgress
from safesweep.models.provider import ScanProvider
from safesweep.models.scan_result import ScanOptions, ScanResult
from safesweep.settings import EngineConfig
from safesweep.utils import bytes_to_human, format_elapsed

log = logging.getLogger(__name__)

ScanProgressCallback = Callable[[ScanProgress], None]
CleanProgressCallback = Callable[[CleanProgress], None]


class EngineState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    SCANNED = "scanned"
    CLEANING = "cleaning"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


_BUSY = frozenset({EngineState.SCANNING, EngineState.CLEANING})


class _ScanAggregator:
    """Append-only, lock-protected collector shared by provider workers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.items: list[CleanableItem] = []
        self.warnings: list[str] = []
        self.errors: dict[str, str] = {}
        self.finished = 0

    def add(self, provider_id: str, items: list[CleanableItem], warnings: list[str]) -> int:
        with self._lock:
            self.items.extend(items)
            self.warnings.extend(f"{provider_id}: {w}" for w in warnings)
            self.finished += 1
            return self.finished

    def fail(self, provider_id: str, message: str, items: list[CleanableItem], warnings: list[str]) -> int:
        with self._lock:
            self.errors[provider_id] = message
            self.items.extend(items)
            self.warnings.extend(f"{provider_id}: {w}" for w in warnings)
            self.finished += 1
            return self.finished


class CleaningOrchestrator:
    """Coordinates scanning and cleaning across providers.

    Only one of scanning or cleaning may run at a time; a conflicting
    request raises :class:`InvalidStateError` instead of being queued.
    Terminal states (COMPLETED, CANCELLED, FAILED) stay visible until the
    next operation starts or :meth:`reset` is called.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        config: EngineConfig | None = None,
        *,
        backup_manager: BackupManager | None = None,
        eraser: SecureEraser | None = None,
        detector: DuplicateDetector | None = None,
        tracker: Tracker | None = None,
        on_scan_progress: ScanProgressCallback | None = None,
        on_clean_progress: CleanProgressCallback | None = None,
    ) -> None:
        self.registry = registry
        self.config = config or EngineConfig()
        self.backups = backup_manager or BackupManager(self.config.backup_root)
        self.eraser = eraser or SecureEraser()
        self.detector = detector or DuplicateDetector(max_workers=self.config.hash_workers)
        if tracker is None and self.config.track_history:
            tracker = Tracker()
        self.tracker = tracker
        self.scan_progress: ProgressSink[ScanProgress] = ProgressSink(on_scan_progress)
        self.clean_progress: ProgressSink[CleanProgress] = ProgressSink(on_clean_progress)

        self._state = EngineState.IDLE
        self._state_lock = threading.Lock()
        self._cancel = CancellationToken()
        self._last_scan: ScanResult | None = None
        self._worker: ThreadPoolExecutor | None = None

    # -- State --

    @property
    def state(self) -> EngineState:
        with self._state_lock:
            return self._state

    @property
    def last_scan(self) -> ScanResult | None:
        return self._last_scan

    def _begin(self, target: EngineState) -> CancellationToken:
        with self._state_lock:
            if self._state in _BUSY:
                raise InvalidStateError(f"Cannot start {target.value} while {self._state.value}")
            self._state = target
            self._cancel = CancellationToken()
            return self._cancel

    def _finish(self, state: EngineState) -> None:
        with self._state_lock:
            self._state = state

    def reset(self) -> None:
        """Return to IDLE from any non-busy state."""
        with self._state_lock:
            if self._state in _BUSY:
                raise InvalidStateError(f"Cannot reset while {self._state.value}")
            self._state = EngineState.IDLE

    def cancel(self) -> None:
        """Ask the running scan or clean to stop at the next item boundary."""
        log.info("Cancellation requested")
        self._cancel.cancel()

    # -- Background execution --

    def start_scan(self, options: ScanOptions | None = None) -> Future[ScanResult]:
        """Run :meth:`scan` on the background worker."""
        token = self._begin(EngineState.SCANNING)
        return self._submit(self._run_scan, options or ScanOptions(), token)

    def start_clean(self, items: Iterable[CleanableItem]) -> Future[CleaningResult]:
        """Run :meth:`clean` on the background worker."""
        token = self._begin(EngineState.CLEANING)
        return self._submit(self._run_clean, list(items), token)

    def _submit(self, fn, *args) -> Future:
        if self._worker is None:
            self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="safesweep")
        try:
            return self._worker.submit(fn, *args)
        except RuntimeError:
            self._finish(EngineState.IDLE)
            raise

    def shutdown(self, wait: bool = True) -> None:
        if self._worker is not None:
            self._cancel.cancel()
            self._worker.shutdown(wait=wait)
            self._worker = None

    def __enter__(self) -> CleaningOrchestrator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    # -- Scan --

    def scan(self, options: ScanOptions | None = None) -> ScanResult:
        """Scan with all enabled providers and return the aggregate.

        Providers run concurrently on a small thread pool. A provider that
        fails is logged and recorded in ``provider_errors``; whatever it
        found before failing is kept.
        """
        token = self._begin(EngineState.SCANNING)
        return self._run_scan(options or ScanOptions(), token)

    def _run_scan(self, options: ScanOptions, token: CancellationToken) -> ScanResult:
        try:
            result = self._do_scan(options, token)
        except Exception:
            log.exception("Scan failed")
            self._finish(EngineState.FAILED)
            raise
        self._last_scan = result
        self._finish(EngineState.CANCELLED if result.cancelled else EngineState.SCANNED)
        return result

    def _do_scan(self, options: ScanOptions, token: CancellationToken) -> ScanResult:
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        options = self._effective_options(options)
        providers = self._resolve_providers(options.provider_ids)
        detect = options.detect_duplicates if options.detect_duplicates is not None else self.config.detect_duplicates
        total_steps = len(providers) + (1 if detect else 0)
        aggregator = _ScanAggregator()

        if (os.cpu_count() or 1) > 1 and len(providers) > 1 and self.config.max_scan_workers > 1:
            max_workers = min(self.config.max_scan_workers, len(providers))
            with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="safesweep-scan") as executor:
                futures = [
                    executor.submit(self._scan_provider, p, i, total_steps, options, token, aggregator)
                    for i, p in enumerate(providers, 1)
                ]
                for future in futures:
                    future.result()
        else:
            for i, provider in enumerate(providers, 1):
                self._scan_provider(provider, i, total_steps, options, token, aggregator)

        items = self._dedupe(
            [item for item in aggregator.items if options.wants(item.category)],
            aggregator.warnings,
        )
        items = risk.annotate(items, reference_time=started_at)

        groups = []
        if detect and not token:
            self.scan_progress.emit(ScanProgress(total_steps, total_steps, "Looking for duplicate files"))
            groups = self.detector.find_duplicates(options.duplicate_scope, items, token)
            aggregator.warnings.extend(self.detector.warnings)

        result = ScanResult(
            items=tuple(items),
            duplicate_groups=tuple(groups),
            warnings=tuple(aggregator.warnings),
            provider_errors=dict(aggregator.errors),
            started_at=started_at,
            duration=time.monotonic() - start,
            cancelled=bool(token),
        )
        self.scan_progress.emit(
            ScanProgress(
                total_steps,
                total_steps,
                "Scan cancelled" if result.cancelled else "Scan complete",
                processed_items=len(items),
            )
        )
        log.info(
            "Scan %s: %d items totaling %s in %s",
            "cancelled" if result.cancelled else "completed",
            len(items),
            bytes_to_human(result.total_bytes),
            format_elapsed(result.duration),
        )
        return result

    def _scan_provider(
        self,
        provider: ScanProvider,
        step: int,
        total_steps: int,
        options: ScanOptions,
        token: CancellationToken,
        aggregator: _ScanAggregator,
    ) -> None:
        if token:
            return
        progress = ProviderProgress(
            self.scan_progress, provider.id, step, total_steps, self.config.progress_batch_size
        )
        progress.note(f"Scanning {provider.name}")
        provider.reset_warnings()
        try:
            items = provider.scan(options, progress, token)
        except ProviderScanError as e:
            log.warning("Provider '%s' failed during scan: %s", provider.id, e)
            finished = aggregator.fail(provider.id, str(e), list(e.partial_items), provider.warnings)
        except Exception as e:
            log.exception("Provider '%s' failed during scan", provider.id)
            finished = aggregator.fail(provider.id, str(e) or type(e).__name__, [], provider.warnings)
        else:
            finished = aggregator.add(provider.id, items, provider.warnings)
        self.scan_progress.emit(
            ScanProgress(finished, total_steps, f"Finished {provider.name}", provider.id, progress.processed)
        )

    def _effective_options(self, options: ScanOptions) -> ScanOptions:
        excluded = list(options.excluded_paths) + [p for p in self.config.excluded_paths if p not in options.excluded_paths]
        provider_ids = options.provider_ids
        if provider_ids is None and self.config.enabled_providers is not None:
            provider_ids = list(self.config.enabled_providers)
        return dataclasses.replace(
            options,
            excluded_paths=excluded,
            provider_ids=provider_ids,
            large_file_min_bytes=options.large_file_min_bytes or self.config.large_file_min_bytes,
        )

    def _resolve_providers(self, provider_ids: list[str] | None) -> list[ScanProvider]:
        """Resolve which providers to scan with."""
        if provider_ids is None:
            return self.registry.get_available()

        result: list[ScanProvider] = []
        for pid in provider_ids:
            provider = self.registry.get(pid)
            if provider is None:
                log.warning("Provider '%s' not found, skipping", pid)
            elif not provider.is_available():
                log.info("Provider '%s' not available on this system, skipping", pid)
            else:
                result.append(provider)
        return result

    @staticmethod
    def _dedupe(items: list[CleanableItem], warnings: list[str]) -> list[CleanableItem]:
        seen: dict[str, str] = {}
        unique: list[CleanableItem] = []
        for item in items:
            owner = seen.get(item.locator)
            if owner is not None:
                warnings.append(f"{item.provider_id}: {item.locator} already reported by {owner}")
                continue
            seen[item.locator] = item.provider_id
            unique.append(item)
        return unique

    # -- Selection helpers --

    def default_selection(self, result: ScanResult | None = None) -> Selection:
        result = result or self._last_scan
        return Selection.default_for(result) if result else Selection()

    def select_duplicates(self, result: ScanResult | None = None) -> Selection:
        """Select the redundant members of every duplicate group.

        With ``verify_duplicates_bytewise`` on, a member is only selected
        after a byte-for-byte comparison with the canonical copy.
        """
        result = result or self._last_scan
        selection = Selection()
        if result is None:
            return selection
        for group in result.duplicate_groups:
            if self.config.verify_duplicates_bytewise:
                members = self.detector.verify_group(group)
            else:
                members = list(group.redundant)
            for locator in members:
                if result.get(locator) is not None:
                    selection.select(locator)
        return selection

    # -- Clean --

    def clean(self, items: Iterable[CleanableItem]) -> CleaningResult:
        """Destroy *items*, safest first, backing up anything at MEDIUM or above.

        Per-item failures end up in ``CleaningResult.failed``; nothing is
        raised past the batch. Cancellation returns what was done so far.
        """
        token = self._begin(EngineState.CLEANING)
        return self._run_clean(list(items), token)

    def _run_clean(self, items: list[CleanableItem], token: CancellationToken) -> CleaningResult:
        try:
            result = self._do_clean(items, token)
        except Exception:
            log.exception("Clean failed")
            self._finish(EngineState.FAILED)
            raise
        self._finish(EngineState.CANCELLED if result.cancelled else EngineState.COMPLETED)
        if self.tracker is not None:
            self.tracker.record(result)
        return result

    def _do_clean(self, items: list[CleanableItem], token: CancellationToken) -> CleaningResult:
        start = time.monotonic()
        result = CleaningResult()
        ordered = sorted((risk.raise_to_floor(i) for i in self._dedupe(items, [])), key=lambda i: i.risk)
        total = len(ordered)
        processed_bytes = 0

        for index, item in enumerate(ordered):
            if token:
                result.cancelled = True
                log.info("Clean cancelled after %d of %d items", index, total)
                break
            self.clean_progress.emit(
                CleanProgress(index, total, f"Cleaning {item.category.label}", item.locator, processed_bytes)
            )
            self._clean_item(item, result)
            processed_bytes += item.size_bytes

        result.duration = time.monotonic() - start
        self.clean_progress.emit(
            CleanProgress(
                len(result.cleaned) + len(result.failed),
                total,
                "Clean cancelled" if result.cancelled else "Clean complete",
                processed_bytes=processed_bytes,
            )
        )
        log.info(
            "Cleaning finished: freed %s from %d items, %d failed",
            bytes_to_human(result.total_bytes_freed),
            len(result.cleaned),
            len(result.failed),
        )
        return result

    def _clean_item(self, item: CleanableItem, result: CleaningResult) -> None:
        provider = self.registry.get(item.provider_id)
        backup: BackupRecord | None = None

        if risk.requires_backup(item.risk):
            snapshot = None
            if not item.is_path and provider is not None:
                snapshot = lambda: provider.snapshot_item(item)  # noqa: E731
            try:
                backup = self.backups.backup(item, snapshot=snapshot)
            except BackupVerificationFailed:
                log.warning("Skipping %s: backup verification failed", item.locator)
                result.add_failed(item, BackupVerificationFailed.reason)
                return
            except BackupIOError as e:
                log.warning("Skipping %s: backup failed: %s", item.locator, e)
                result.add_failed(item, str(e))
                return
            except Exception as e:
                log.exception("Unexpected error backing up %s", item.locator)
                result.add_failed(item, f"{type(e).__name__}: {e}")
                return
            result.backups[item.locator] = backup

        try:
            self._destroy(item, provider)
        except EraseError as e:
            log.warning("Could not clean %s: %s", item.locator, e)
            result.add_failed(item, str(e), backup)
        except Exception as e:
            log.exception("Unexpected error cleaning %s", item.locator)
            result.add_failed(item, f"{type(e).__name__}: {e}", backup)
        else:
            result.add_cleaned(item)

    def _destroy(self, item: CleanableItem, provider: ScanProvider | None) -> None:
        match item.domain:
            case ItemDomain.FILE:
                self.eraser.erase(item, item.risk)
            case ItemDomain.REGISTRY | ItemDomain.STARTUP:
                if item.is_path:
                    self.eraser.erase(item, item.risk)
                    return
                if provider is None:
                    raise EraseError(f"{item.locator}: provider '{item.provider_id}' is not registered")
                try:
                    provider.remove_item(item)
                except (OSError, NotImplementedError) as e:
                    raise EraseError(f"{item.locator}: {e}") from e

    # -- Restore --

    def restore(self, record: BackupRecord, *, overwrite: bool = False) -> None:
        """Restore a backup, routing non-path items through their provider.

        Raises:
            RestoreError: If the restore cannot be performed or verified.
        """
        writer = None
        if not record.source.startswith("/"):
            provider = self.registry.get(record.provider_id)
            if provider is None:
                raise RestoreError(f"{record.source}: provider '{record.provider_id}' is not registered")
            writer = lambda data: provider.restore_item(record.source, data)  # noqa: E731
        self.backups.restore(record, writer=writer, overwrite=overwrite)
