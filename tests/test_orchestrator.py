"""Tests for the cleaning orchestrator."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from safesweep.core.backup import BackupManager
from safesweep.core.eraser import SecureEraser
from safesweep.core.hashing import content_hash
from safesweep.core.orchestrator import CleaningOrchestrator, EngineState
from safesweep.core.registry import ProviderRegistry
from safesweep.core.tracker import HistoryStore, Tracker
from safesweep.errors import EraseError, InvalidStateError, ProviderScanError
from safesweep.models.item import Category, CleanableItem, RiskTier
from safesweep.models.provider import ScanProvider
from safesweep.models.scan_result import ScanOptions
from safesweep.settings import EngineConfig


class FakeProvider(ScanProvider):
    """Provider returning canned items, optionally failing or running a hook mid-scan."""

    def __init__(
        self,
        provider_id: str,
        items: list[CleanableItem] | None = None,
        fail: Exception | None = None,
        category: Category = Category.CACHE,
        on_scan=None,
        warnings: list[str] = (),
    ):
        self._id = provider_id
        self._items = items or []
        self._fail = fail
        self._category = category
        self._on_scan = on_scan
        self._warnings_to_emit = list(warnings)

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return f"Fake ({self._id})"

    @property
    def description(self) -> str:
        return "A fake provider for testing"

    @property
    def category(self) -> Category:
        return self._category

    def scan(self, options, progress, cancel):
        if self._on_scan is not None:
            self._on_scan()
        for message in self._warnings_to_emit:
            self.warn(message)
        for _ in self._items:
            progress.tick()
        if self._fail is not None:
            raise self._fail
        return [i for i in self._items if not options.is_excluded(i.locator)]


class RegistryProvider(ScanProvider):
    """Provider for non-path items kept in an in-memory key/value store."""

    id = "registry"
    name = "Registry"
    description = "In-memory registry entries"
    category = Category.REGISTRY_ENTRY

    def __init__(self, store: dict[str, bytes]):
        self.store = store

    def scan(self, options, progress, cancel):
        return [
            CleanableItem(locator=key, size_bytes=len(value), category=Category.REGISTRY_ENTRY, provider_id=self.id)
            for key, value in sorted(self.store.items())
        ]

    def snapshot_item(self, item):
        return self.store[item.locator]

    def remove_item(self, item):
        del self.store[item.locator]

    def restore_item(self, locator, data):
        self.store[locator] = data


class UnreadableRegistryProvider(RegistryProvider):
    def snapshot_item(self, item):
        raise KeyError(item.locator)


class ExplodingBackupManager(BackupManager):
    def backup(self, item, snapshot=None):
        raise RuntimeError("backup volume went away")


class CorruptingBackupManager(BackupManager):
    def __init__(self, backup_root, corrupt_name):
        super().__init__(backup_root)
        self.corrupt_name = corrupt_name

    def _copy_content(self, source, destination):
        super()._copy_content(source, destination)
        if source.name == self.corrupt_name:
            with open(destination, "ab") as f:
                f.write(b"bitrot")


class CancellingEraser(SecureEraser):
    """Cancels the owning orchestrator once *after* items have been erased."""

    def __init__(self, after: int):
        super().__init__()
        self.after = after
        self.orchestrator: CleaningOrchestrator | None = None
        self.erased: list[str] = []

    def erase(self, item, risk=None):
        super().erase(item, risk)
        self.erased.append(item.locator)
        if len(self.erased) == self.after:
            self.orchestrator.cancel()


class RecordingEraser(SecureEraser):
    def __init__(self, fail_on: str | None = None):
        super().__init__()
        self.fail_on = fail_on
        self.erased: list[str] = []
        self.tiers: dict[str, RiskTier] = {}

    def erase(self, item, risk=None):
        if item.locator == self.fail_on:
            raise EraseError(f"{item.locator}: Device or resource busy")
        self.erased.append(item.locator)
        self.tiers[item.locator] = risk
        super().erase(item, risk)


@pytest.fixture
def config(tmp_path):
    return EngineConfig(backup_root=tmp_path / "backups", track_history=False)


def _orchestrator(config, *providers, **kwargs) -> CleaningOrchestrator:
    registry = ProviderRegistry()
    for provider in providers:
        registry.register(provider)
    return CleaningOrchestrator(registry, config, **kwargs)


def _file_items(paths: list[Path], category=Category.USER_FILES, risk=RiskTier.MEDIUM) -> list[CleanableItem]:
    return [
        CleanableItem(locator=str(p), size_bytes=p.stat().st_size, category=category, risk=risk, provider_id="files")
        for p in paths
    ]


def _item(locator: str, size: int = 10, category=Category.CACHE, provider_id="fake") -> CleanableItem:
    return CleanableItem(locator=locator, size_bytes=size, category=category, provider_id=provider_id)


class TestScan:
    def test_aggregates_available_providers(self, config):
        orchestrator = _orchestrator(
            config,
            FakeProvider("alpha", [_item("/a/1", provider_id="alpha")]),
            FakeProvider("beta", [_item("/b/1", provider_id="beta"), _item("/b/2", provider_id="beta")]),
        )

        result = orchestrator.scan()

        assert {i.locator for i in result.items} == {"/a/1", "/b/1", "/b/2"}
        assert result.total_bytes == 30
        assert not result.cancelled
        assert orchestrator.state is EngineState.SCANNED
        assert orchestrator.last_scan is result

    def test_explicit_provider_ids(self, config):
        orchestrator = _orchestrator(
            config,
            FakeProvider("alpha", [_item("/a/1")]),
            FakeProvider("beta", [_item("/b/1")]),
        )
        result = orchestrator.scan(ScanOptions(provider_ids=["beta", "missing"]))
        assert [i.locator for i in result.items] == ["/b/1"]

    def test_enabled_providers_from_config(self, tmp_path):
        config = EngineConfig(backup_root=tmp_path, track_history=False, enabled_providers=("alpha",))
        orchestrator = _orchestrator(
            config,
            FakeProvider("alpha", [_item("/a/1")]),
            FakeProvider("beta", [_item("/b/1")]),
        )
        assert [i.locator for i in orchestrator.scan().items] == ["/a/1"]

    def test_risk_is_annotated(self, config):
        items = [_item("/t/1", category=Category.TRASH), _item("/c/1", category=Category.TEMP_FILES)]
        result = _orchestrator(config, FakeProvider("alpha", items)).scan()
        assert result.get("/t/1").risk is RiskTier.MEDIUM
        assert result.get("/c/1").risk is RiskTier.SAFE

    def test_failing_provider_is_recorded(self, config):
        orchestrator = _orchestrator(
            config,
            FakeProvider("good", [_item("/g/1")]),
            FakeProvider("bad", [_item("/x/1")], fail=RuntimeError("disk on fire")),
        )

        result = orchestrator.scan()

        assert [i.locator for i in result.items] == ["/g/1"]
        assert result.provider_errors == {"bad": "disk on fire"}
        assert orchestrator.state is EngineState.SCANNED

    def test_partial_items_from_scan_error_are_kept(self, config):
        partial = [_item("/p/1")]
        provider = FakeProvider("partial", fail=ProviderScanError("partial", "lost the mount", partial))

        result = _orchestrator(config, provider).scan()

        assert [i.locator for i in result.items] == ["/p/1"]
        assert "lost the mount" in result.provider_errors["partial"]

    def test_provider_warnings_are_collected(self, config):
        provider = FakeProvider("alpha", [_item("/a/1")], warnings=["Cannot access /a/2: EACCES"])
        result = _orchestrator(config, provider).scan()
        assert result.warnings == ("alpha: Cannot access /a/2: EACCES",)

    def test_duplicate_locators_are_dropped(self, config):
        orchestrator = _orchestrator(
            config,
            FakeProvider("alpha", [_item("/same", provider_id="alpha")]),
            FakeProvider("beta", [_item("/same", provider_id="beta")]),
        )
        result = orchestrator.scan()
        assert len(result.items) == 1
        assert len(result.warnings) == 1

    def test_category_filter_and_exclusions(self, tmp_path):
        config = EngineConfig(backup_root=tmp_path, track_history=False, excluded_paths=(Path("/keep"),))
        items = [
            _item("/c/1"),
            _item("/keep/x"),
            _item("/t/1", category=Category.TRASH),
        ]
        result = _orchestrator(config, FakeProvider("alpha", items)).scan(
            ScanOptions(categories={Category.CACHE})
        )
        assert [i.locator for i in result.items] == ["/c/1"]

    def test_duplicate_detection(self, config, tmp_path, write_file):
        a = write_file(tmp_path / "dl" / "a", "same")
        b = write_file(tmp_path / "dl" / "b", "same")
        c = write_file(tmp_path / "dl" / "c", "different")
        provider = FakeProvider("files", _file_items([a, b, c]), category=Category.USER_FILES)
        orchestrator = _orchestrator(config, provider)

        result = orchestrator.scan(ScanOptions(detect_duplicates=True, duplicate_scope=tmp_path / "dl"))

        [group] = result.duplicate_groups
        assert set(group.members) == {str(a), str(b)}
        assert result.duplicate_wasted_bytes == 4

        selection = orchestrator.select_duplicates()
        assert list(selection) == [str(b)]

    def test_progress_reaches_final_step(self, config):
        seen = []
        orchestrator = _orchestrator(
            config,
            FakeProvider("alpha", [_item(f"/a/{i}") for i in range(5)]),
            FakeProvider("beta"),
            on_scan_progress=seen.append,
        )

        orchestrator.scan()

        assert seen[-1].current_step == seen[-1].total_steps == 2
        assert seen[-1].operation == "Scan complete"
        assert seen[-1].processed_items == 5

    def test_cancel_during_scan(self, config):
        holder = {}
        provider = FakeProvider("alpha", [_item("/a/1")], on_scan=lambda: holder["o"].cancel())
        orchestrator = _orchestrator(config, provider)
        holder["o"] = orchestrator

        result = orchestrator.scan()

        assert result.cancelled
        assert orchestrator.state is EngineState.CANCELLED

    def test_default_selection(self, config):
        items = [_item("/c/1"), _item("/t/1", category=Category.TRASH)]
        orchestrator = _orchestrator(config, FakeProvider("alpha", items))
        orchestrator.scan()
        assert list(orchestrator.default_selection()) == ["/c/1"]


class TestStateMachine:
    def test_clean_rejected_while_scanning(self, config):
        rejected = []

        def try_clean():
            with pytest.raises(InvalidStateError):
                orchestrator.clean([])
            with pytest.raises(InvalidStateError):
                orchestrator.scan()
            with pytest.raises(InvalidStateError):
                orchestrator.reset()
            rejected.append(orchestrator.state)

        orchestrator = _orchestrator(config, FakeProvider("alpha", on_scan=try_clean))
        orchestrator.scan()

        assert rejected == [EngineState.SCANNING]
        assert orchestrator.state is EngineState.SCANNED

    def test_reset_returns_to_idle(self, config):
        orchestrator = _orchestrator(config, FakeProvider("alpha"))
        assert orchestrator.state is EngineState.IDLE
        orchestrator.scan()
        orchestrator.reset()
        assert orchestrator.state is EngineState.IDLE

    def test_terminal_state_allows_next_operation(self, config, tmp_path, write_file):
        path = write_file(tmp_path / "f", "x")
        orchestrator = _orchestrator(config, FakeProvider("alpha"))
        orchestrator.clean(_file_items([path], risk=RiskTier.SAFE))
        assert orchestrator.state is EngineState.COMPLETED
        orchestrator.scan()
        assert orchestrator.state is EngineState.SCANNED


class TestClean:
    def test_backup_verification_failure(self, config, tmp_path, write_file):
        paths = [write_file(tmp_path / "data" / f"file{i}", f"content {i}") for i in range(1, 6)]
        items = _file_items(paths)
        orchestrator = _orchestrator(
            config, backup_manager=CorruptingBackupManager(config.backup_root, "file3")
        )

        result = orchestrator.clean(items)

        assert len(result.cleaned) == 4
        assert len(result.failed) == 1
        failed = result.failed[0]
        assert failed.item.locator == str(paths[2])
        assert failed.reason == "BackupVerificationFailed"
        assert paths[2].read_text() == "content 3"
        assert [p.exists() for p in paths] == [False, False, True, False, False]
        assert orchestrator.state is EngineState.COMPLETED

        # every cleaned item at MEDIUM or above has a verified backup
        for item in result.cleaned:
            assert result.backups[item.locator].verified
        assert str(paths[2]) not in result.backups

    def test_cancel_mid_clean(self, config, tmp_path, write_file):
        paths = [write_file(tmp_path / "data" / f"f{i:02d}", "x") for i in range(10)]
        eraser = CancellingEraser(after=2)
        orchestrator = _orchestrator(config, eraser=eraser)
        eraser.orchestrator = orchestrator

        result = orchestrator.clean(_file_items(paths, Category.TEMP_FILES, RiskTier.SAFE))

        assert result.cancelled
        assert orchestrator.state is EngineState.CANCELLED
        assert len(result.cleaned) == 2
        assert result.failed == []
        assert sum(p.exists() for p in paths) == 8

    def test_result_invariants(self, config, tmp_path, write_file):
        paths = [write_file(tmp_path / "data" / f"f{i}", "x" * (i + 1)) for i in range(4)]
        eraser = RecordingEraser(fail_on=str(paths[1]))
        orchestrator = _orchestrator(config, eraser=eraser)

        result = orchestrator.clean(_file_items(paths, Category.CACHE, RiskTier.LOW))

        cleaned = {i.locator for i in result.cleaned}
        failed = {f.item.locator for f in result.failed}
        assert cleaned.isdisjoint(failed)
        assert cleaned | failed == {str(p) for p in paths}
        assert result.total_bytes_freed == sum(i.size_bytes for i in result.cleaned) == 1 + 3 + 4
        assert not result.success

    def test_items_cleaned_safest_first(self, config, tmp_path, write_file):
        high = write_file(tmp_path / "high", "h")
        safe = write_file(tmp_path / "safe", "s")
        medium = write_file(tmp_path / "medium", "m")
        items = (
            _file_items([high], Category.BROWSER_CREDENTIALS, RiskTier.HIGH)
            + _file_items([safe], Category.TEMP_FILES, RiskTier.SAFE)
            + _file_items([medium], Category.TRASH, RiskTier.MEDIUM)
        )
        eraser = RecordingEraser()

        result = _orchestrator(config, eraser=eraser).clean(items)

        assert eraser.erased == [str(safe), str(medium), str(high)]
        assert set(result.backups) == {str(medium), str(high)}

    def test_backup_io_error_skips_erase(self, config, tmp_path):
        item = CleanableItem(
            locator=str(tmp_path / "vanished"), size_bytes=3, category=Category.TRASH, risk=RiskTier.MEDIUM
        )
        eraser = RecordingEraser()

        result = _orchestrator(config, eraser=eraser).clean([item])

        assert eraser.erased == []
        assert "no longer exists" in result.failed[0].reason

    def test_unclassified_item_keeps_its_category_safeguards(self, config, tmp_path, write_file):
        path = write_file(tmp_path / "Login Data", "secret")
        item = CleanableItem(locator=str(path), size_bytes=6, category=Category.BROWSER_CREDENTIALS)
        eraser = RecordingEraser()

        result = _orchestrator(config, eraser=eraser).clean([item])

        assert not path.exists()
        assert result.backups[str(path)].verified
        assert eraser.tiers == {str(path): RiskTier.HIGH}
        assert [i.risk for i in result.cleaned] == [RiskTier.HIGH]

    def test_unexpected_backup_error_is_collected(self, config, tmp_path, write_file):
        kept = write_file(tmp_path / "kept", "k")
        gone = write_file(tmp_path / "gone", "g")
        items = _file_items([kept]) + _file_items([gone], Category.CACHE, RiskTier.LOW)
        orchestrator = _orchestrator(config, backup_manager=ExplodingBackupManager(config.backup_root))

        result = orchestrator.clean(items)

        assert orchestrator.state is EngineState.COMPLETED
        [failed] = result.failed
        assert failed.item.locator == str(kept)
        assert failed.reason == "RuntimeError: backup volume went away"
        assert kept.exists()
        assert [i.locator for i in result.cleaned] == [str(gone)]

    def test_erase_failure_keeps_backup_record(self, config, tmp_path, write_file):
        path = write_file(tmp_path / "busy", "b")
        eraser = RecordingEraser(fail_on=str(path))

        result = _orchestrator(config, eraser=eraser).clean(_file_items([path]))

        [failed] = result.failed
        assert failed.backup is not None and failed.backup.verified
        assert "busy" in failed.reason

    def test_progress_is_reported(self, config, tmp_path, write_file):
        paths = [write_file(tmp_path / f"f{i}", "x") for i in range(3)]
        seen = []
        orchestrator = _orchestrator(config, on_clean_progress=seen.append)

        orchestrator.clean(_file_items(paths, Category.CACHE, RiskTier.LOW))

        assert [p.current_item for p in seen[:-1]] == [str(p) for p in paths]
        assert seen[-1].processed_items == seen[-1].total_items == 3
        assert seen[-1].processed_bytes == 3

    def test_session_recorded(self, config, tmp_path, write_file):
        path = write_file(tmp_path / "f", "xyz")
        tracker = Tracker(HistoryStore(tmp_path / "history.json"))

        _orchestrator(config, tracker=tracker).clean(_file_items([path], Category.CACHE, RiskTier.LOW))

        assert tracker.get_stats()["bytes_freed"] == 3


class TestNonPathItems:
    def test_backup_remove_and_restore_through_provider(self, config):
        store = {"HKCU\\Run\\Gone": b"C:\\gone.exe", "HKCU\\Run\\Kept": b"C:\\kept.exe"}
        provider = RegistryProvider(store)
        orchestrator = _orchestrator(config, provider)
        scan = orchestrator.scan()
        item = scan.get("HKCU\\Run\\Gone")
        assert item.risk is RiskTier.MEDIUM

        result = orchestrator.clean([item])

        assert [i.locator for i in result.cleaned] == ["HKCU\\Run\\Gone"]
        assert "HKCU\\Run\\Gone" not in store
        record = result.backups["HKCU\\Run\\Gone"]
        assert record.provider_id == "registry"

        orchestrator.restore(record)
        assert store["HKCU\\Run\\Gone"] == b"C:\\gone.exe"

    def test_failing_snapshot_does_not_abort_the_batch(self, config, tmp_path, write_file):
        store = {"HKCU\\Run\\X": b"C:\\x.exe"}
        path = write_file(tmp_path / "Cookies", "c")
        items = [
            CleanableItem(
                locator="HKCU\\Run\\X",
                size_bytes=8,
                category=Category.REGISTRY_ENTRY,
                risk=RiskTier.MEDIUM,
                provider_id="registry",
            ),
            *_file_items([path], Category.BROWSER_CREDENTIALS, RiskTier.HIGH),
        ]
        orchestrator = _orchestrator(config, UnreadableRegistryProvider(store))

        result = orchestrator.clean(items)

        assert orchestrator.state is EngineState.COMPLETED
        [failed] = result.failed
        assert failed.item.locator == "HKCU\\Run\\X"
        assert "KeyError" in failed.reason
        assert store == {"HKCU\\Run\\X": b"C:\\x.exe"}
        assert [i.locator for i in result.cleaned] == [str(path)]
        assert not path.exists()


class TestBackgroundExecution:
    def test_futures(self, config, tmp_path, write_file):
        path = write_file(tmp_path / "f", "x")
        provider = FakeProvider("files", _file_items([path], Category.CACHE), category=Category.CACHE)
        with _orchestrator(config, provider) as orchestrator:
            scan = orchestrator.start_scan().result(timeout=10)
            assert orchestrator.state is EngineState.SCANNED
            result = orchestrator.start_clean(scan.items).result(timeout=10)
        assert [i.locator for i in result.cleaned] == [str(path)]
        assert not path.exists()

    def test_clean_rejected_while_background_scan_runs(self, config):
        started = threading.Event()
        release = threading.Event()

        def block():
            started.set()
            release.wait(10)

        orchestrator = _orchestrator(config, FakeProvider("slow", [_item("/s/1")], on_scan=block))
        try:
            future = orchestrator.start_scan()
            assert started.wait(10)
            assert orchestrator.state is EngineState.SCANNING
            with pytest.raises(InvalidStateError):
                orchestrator.start_clean([])
        finally:
            release.set()
        assert [i.locator for i in future.result(timeout=10).items] == ["/s/1"]
        orchestrator.shutdown()

    def test_scan_runs_off_the_caller_thread(self, config):
        threads = []
        provider = FakeProvider("alpha", on_scan=lambda: threads.append(threading.current_thread()))
        with _orchestrator(config, provider) as orchestrator:
            orchestrator.start_scan().result(timeout=10)
        assert threads and threads[0] is not threading.current_thread()

    def test_restore_after_clean_preserves_hash(self, config, tmp_path, write_file):
        path = write_file(tmp_path / "doc", "important")
        original = content_hash(path)
        orchestrator = _orchestrator(config)
        result = orchestrator.clean(_file_items([path]))
        assert not path.exists()

        orchestrator.restore(result.backups[str(path)])

        assert content_hash(path) == original
