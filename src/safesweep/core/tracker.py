"""Cleaning history: per-session records and aggregated statistics."""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from safesweep.models.clean_result import CleaningResult
from safesweep.utils import xdg_data_home

log = logging.getLogger(__name__)


def default_history_path() -> Path:
    return xdg_data_home() / "safesweep" / "history.json"


class HistoryStore:
    """JSON file holding the list of recorded cleaning sessions."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_history_path()

    def load(self) -> dict[str, Any]:
        """Load the history file, returning an empty structure if missing or corrupt."""
        if not self.path.exists():
            return {"sessions": []}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError):
            log.exception("Failed to load history file: %s", self.path)
            return {"sessions": []}
        data.setdefault("sessions", [])
        return data

    def save(self, data: dict[str, Any]) -> None:
        tmp = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except OSError:
            log.exception("Failed to save history file: %s", self.path)


class Tracker:
    """Records cleaning results and reports freed-space statistics."""

    def __init__(self, store: HistoryStore | None = None) -> None:
        self.store = store or HistoryStore()
        self._lock = threading.Lock()

    def record(self, result: CleaningResult) -> None:
        """Append one cleaning run to the history."""
        if not result.cleaned and not result.failed:
            return
        entry = self._build_session_entry(result)
        with self._lock:
            history = self.store.load()
            history["sessions"].append(entry)
            self.store.save(history)
        log.info(
            "Recorded session: %d bytes freed from %d items, %d failed",
            result.total_bytes_freed,
            len(result.cleaned),
            len(result.failed),
        )

    def sessions(self) -> list[dict[str, Any]]:
        return self.store.load()["sessions"]

    def get_last_clean_time(self) -> str | None:
        """Return ISO timestamp of the most recent cleaning session, or None."""
        sessions = self.sessions()
        return sessions[-1]["timestamp"] if sessions else None

    def get_stats(self, period: str = "all") -> dict[str, Any]:
        """Get aggregated statistics for a time period.

        Args:
            period: One of 'today', 'week', 'month', 'all'.
        """
        all_sessions = self.sessions()

        match period:
            case "today":
                cutoff = _start_of_today()
            case "week":
                cutoff = _start_of_today() - timedelta(days=7)
            case "month":
                cutoff = _start_of_today() - timedelta(days=30)
            case _:
                cutoff = None

        if cutoff is not None:
            sessions = [s for s in all_sessions if datetime.fromisoformat(s["timestamp"]) >= cutoff]
        else:
            sessions = all_sessions

        return {
            "period": period,
            "bytes_freed": sum(_session_bytes(s) for s in sessions),
            "items_cleaned": sum(_session_items(s) for s in sessions),
            "items_failed": sum(s.get("failed", 0) for s in sessions),
            "backups_taken": sum(s.get("backups", 0) for s in sessions),
            "session_count": len(sessions),
            "lifetime_bytes_freed": sum(_session_bytes(s) for s in all_sessions),
            "per_category": self._aggregate_category_stats(sessions),
        }

    @staticmethod
    def _build_session_entry(result: CleaningResult) -> dict[str, Any]:
        per_category: dict[str, dict[str, int]] = {}
        for item in result.cleaned:
            bucket = per_category.setdefault(item.category.value, {"bytes_freed": 0, "items": 0})
            bucket["bytes_freed"] += item.size_bytes
            bucket["items"] += 1
        return {
            "timestamp": result.started_at.isoformat(),
            "duration": round(result.duration, 3),
            "cancelled": result.cancelled,
            "failed": len(result.failed),
            "backups": len(result.backups),
            "details": [
                {"category": category, **totals} for category, totals in sorted(per_category.items())
            ],
        }

    @staticmethod
    def _aggregate_category_stats(sessions: list[dict[str, Any]]) -> dict[str, dict[str, int]]:
        totals: dict[str, dict[str, int]] = {}
        for session in sessions:
            for detail in session.get("details", []):
                bucket = totals.setdefault(detail["category"], {"bytes_freed": 0, "items": 0})
                bucket["bytes_freed"] += detail.get("bytes_freed", 0)
                bucket["items"] += detail.get("items", 0)
        return totals


def _session_bytes(session: dict[str, Any]) -> int:
    return sum(d.get("bytes_freed", 0) for d in session.get("details", []))


def _session_items(session: dict[str, Any]) -> int:
    return sum(d.get("items", 0) for d in session.get("details", []))


def _start_of_today() -> datetime:
    """Return the start of the current UTC day."""
    now = datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)
