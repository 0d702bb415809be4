"""Tests for the cleaning history tracker."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from safesweep.core.tracker import HistoryStore, Tracker
from safesweep.models.clean_result import CleaningResult
from safesweep.models.item import Category, CleanableItem


@pytest.fixture
def history_file(tmp_path):
    return tmp_path / "history.json"


@pytest.fixture
def tracker(history_file):
    return Tracker(HistoryStore(history_file))


def _result(*items: tuple[Category, int], failed: int = 0, started_at=None) -> CleaningResult:
    result = CleaningResult()
    if started_at is not None:
        result.started_at = started_at
    for i, (category, size) in enumerate(items):
        result.add_cleaned(CleanableItem(f"/x/{i}", size, category))
    for i in range(failed):
        result.add_failed(CleanableItem(f"/f/{i}", 1, Category.TRASH), "boom")
    return result


class TestTracker:
    def test_record_writes_session(self, tracker, history_file):
        tracker.record(_result((Category.CACHE, 100), (Category.CACHE, 50), (Category.TRASH, 5), failed=1))

        history = json.loads(history_file.read_text())
        [session] = history["sessions"]
        assert session["failed"] == 1
        assert session["details"] == [
            {"category": "cache", "bytes_freed": 150, "items": 2},
            {"category": "trash", "bytes_freed": 5, "items": 1},
        ]

    def test_empty_result_not_recorded(self, tracker, history_file):
        tracker.record(CleaningResult())
        assert not history_file.exists()
        assert tracker.get_last_clean_time() is None

    def test_stats_accumulate_sessions(self, tracker):
        tracker.record(_result((Category.CACHE, 100)))
        tracker.record(_result((Category.TRASH, 200)))

        stats = tracker.get_stats("all")

        assert stats["bytes_freed"] == 300
        assert stats["items_cleaned"] == 2
        assert stats["session_count"] == 2
        assert stats["lifetime_bytes_freed"] == 300
        assert stats["per_category"] == {
            "cache": {"bytes_freed": 100, "items": 1},
            "trash": {"bytes_freed": 200, "items": 1},
        }

    def test_period_filter(self, tracker):
        old = datetime.now(timezone.utc) - timedelta(days=60)
        tracker.record(_result((Category.CACHE, 100), started_at=old))
        tracker.record(_result((Category.CACHE, 7)))

        today = tracker.get_stats("today")
        month = tracker.get_stats("month")

        assert today["bytes_freed"] == 7
        assert month["session_count"] == 1
        assert today["lifetime_bytes_freed"] == 107

    def test_last_clean_time(self, tracker):
        tracker.record(_result((Category.CACHE, 1)))
        assert tracker.get_last_clean_time() is not None

    def test_default_store_lives_in_data_home(self, isolate_home):
        Tracker().record(_result((Category.CACHE, 1)))
        assert (isolate_home / ".local" / "share" / "safesweep" / "history.json").exists()

    def test_corrupt_history_is_tolerated(self, tracker, history_file):
        history_file.write_text("[[[")
        assert tracker.sessions() == []
