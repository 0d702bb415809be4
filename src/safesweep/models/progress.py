"""Progress snapshots emitted while scanning and cleaning."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ScanProgress:
    """Scan progress: one step per provider plus batched item counts."""

    current_step: int
    total_steps: int
    operation: str
    provider_id: str = ""
    processed_items: int = 0

    @property
    def percent(self) -> float:
        return self.current_step / self.total_steps * 100 if self.total_steps else 0.0


@dataclass(frozen=True, slots=True)
class CleanProgress:
    """Clean progress over the selected items."""

    processed_items: int
    total_items: int
    operation: str
    current_item: str = ""
    processed_bytes: int = 0

    @property
    def percent(self) -> float:
        return self.processed_items / self.total_items * 100 if self.total_items else 0.0
