"""Tests for the provider registry and provider discovery."""

from __future__ import annotations

import textwrap

from safesweep.core.provider_loader import load_providers
from safesweep.core.registry import ProviderRegistry
from safesweep.models.item import Category
from safesweep.models.provider import ScanProvider


class StubProvider(ScanProvider):
    def __init__(self, provider_id: str, order: int = 50, category=Category.CACHE, available=True):
        self._id = provider_id
        self._order = order
        self._category = category
        self._available = available

    id = property(lambda self: self._id)
    name = property(lambda self: self._id.title())
    description = "stub"
    category = property(lambda self: self._category)
    sort_order = property(lambda self: self._order)

    def is_available(self) -> bool:
        if self._available is None:
            raise RuntimeError("availability check failed")
        return self._available

    def scan(self, options, progress, cancel):
        return []


class TestProviderRegistry:
    def test_register_and_get(self):
        registry = ProviderRegistry()
        provider = StubProvider("alpha")
        registry.register(provider)
        assert registry.get("alpha") is provider
        assert "alpha" in registry
        assert registry.get("missing") is None

    def test_duplicate_ids_keep_first(self):
        registry = ProviderRegistry()
        first = StubProvider("alpha")
        registry.register(first)
        registry.register(StubProvider("alpha"))
        assert len(registry) == 1
        assert registry.get("alpha") is first

    def test_display_order(self):
        registry = ProviderRegistry()
        for pid, order in (("c", 10), ("b", 50), ("a", 50)):
            registry.register(StubProvider(pid, order))
        assert [p.id for p in registry] == ["c", "a", "b"]

    def test_available_skips_failing_availability_checks(self):
        registry = ProviderRegistry()
        registry.register(StubProvider("ok"))
        registry.register(StubProvider("off", available=False))
        registry.register(StubProvider("broken", available=None))
        assert [p.id for p in registry.get_available()] == ["ok"]

    def test_by_category(self):
        registry = ProviderRegistry()
        registry.register(StubProvider("a", category=Category.TRASH))
        registry.register(StubProvider("b"))
        assert [p.id for p in registry.get_by_category(Category.TRASH)] == ["a"]


class TestLoadProviders:
    def test_builtin_providers(self):
        registry = ProviderRegistry()
        load_providers(registry, include_system=False)
        for pid in (
            "tmp_files",
            "user_cache",
            "thumbnails",
            "trash",
            "rotated_logs",
            "browser_data",
            "autostart",
            "downloads",
            "large_files",
            "empty_folders",
        ):
            assert pid in registry

    def test_extra_directory(self, tmp_path):
        ext = tmp_path / "ext"
        ext.mkdir()
        (ext / "extra.py").write_text(textwrap.dedent("""
            from safesweep.models.item import Category
            from safesweep.models.provider import ScanProvider

            class ExtraProvider(ScanProvider):
                id = "extra"
                name = "Extra"
                description = "Loaded from a user directory"
                category = Category.CACHE

                def scan(self, options, progress, cancel):
                    return []
        """))
        (ext / "broken.py").write_text("raise ImportError('nope')\n")
        (ext / "notes.txt").write_text("ignored")

        registry = ProviderRegistry()
        load_providers(registry, [ext], include_builtin=False, include_system=False)

        assert [p.id for p in registry] == ["extra"]
