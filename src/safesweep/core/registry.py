"""Provider registry handed to the orchestrator."""

from __future__ import annotations

import logging
from typing import Iterator

from safesweep.models.item import Category
from safesweep.models.provider import ScanProvider

log = logging.getLogger(__name__)


class ProviderRegistry:
    """Stores and retrieves registered scan providers."""

    def __init__(self) -> None:
        self._providers: dict[str, ScanProvider] = {}

    def register(self, provider: ScanProvider) -> None:
        """Register a provider instance."""
        if provider.id in self._providers:
            log.warning("Provider '%s' already registered, skipping duplicate", provider.id)
            return
        self._providers[provider.id] = provider
        log.debug("Registered provider: %s (%s)", provider.id, provider.name)

    def get(self, provider_id: str) -> ScanProvider | None:
        """Get a provider by its ID."""
        return self._providers.get(provider_id)

    def get_all(self) -> list[ScanProvider]:
        """Get all registered providers, in display order."""
        return sorted(self._providers.values(), key=lambda p: (p.sort_order, p.id))

    def get_by_category(self, category: Category) -> list[ScanProvider]:
        """Get all providers whose primary category is *category*."""
        return [p for p in self.get_all() if p.category is category]

    def get_available(self) -> list[ScanProvider]:
        """Get all providers that are available on this system."""
        available = []
        for provider in self.get_all():
            try:
                if provider.is_available():
                    available.append(provider)
            except Exception:
                log.exception("Error checking availability for provider '%s'", provider.id)
        return available

    def __len__(self) -> int:
        return len(self._providers)

    def __iter__(self) -> Iterator[ScanProvider]:
        return iter(self.get_all())

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._providers
