"""Tests for change grouping and impact classification."""

from __future__ import annotations

from datetime import timedelta
from typing import List

import pytest

from docsync.git.history import FileTimeChangeHistory, HistoryUnavailable
from docsync.git.tracker import ChangeHistoryTracker, classify_change, latest_change_times, sort_by_impact
from docsync.models import ChangeRecord, ChangeType, DiffStats, ImpactTier, SourceFile
from tests._fixtures.history import StaticChangeHistory
from tests._fixtures.repo_builder import NOW, days_ago


@pytest.mark.parametrize(
    ("stats", "change_type", "impact"),
    [
        (DiffStats(120, 30, False), ChangeType.MODIFIED, ImpactTier.HIGH),
        (DiffStats(101, 0, False), ChangeType.ADDED, ImpactTier.HIGH),
        (DiffStats(0, 21, False), ChangeType.DELETED, ImpactTier.MEDIUM),
        (DiffStats(10, 10, False), ChangeType.MODIFIED, ImpactTier.LOW),
        (DiffStats(1, 1, True), ChangeType.MODIFIED, ImpactTier.HIGH),
        (None, ChangeType.MODIFIED, ImpactTier.UNKNOWN),
    ],
)
def test_classify_change(stats, change_type, impact) -> None:  # type: ignore[no-untyped-def]
    assert classify_change(stats) == (change_type, impact)


def test_track_groups_records_newest_first_and_filters_extensions() -> None:
    records = [
        ChangeRecord(path="src/foo.ts", commit="c1" * 4, timestamp=days_ago(5), message="first"),
        ChangeRecord(path="src/foo.ts", commit="c2" * 4, timestamp=days_ago(2), message="second"),
        ChangeRecord(path="README.md", commit="c2" * 4, timestamp=days_ago(2)),
        ChangeRecord(path="src/bar.ts", commit="c3" * 4, timestamp=days_ago(40)),
    ]
    history = StaticChangeHistory(records, {"src/foo.ts": DiffStats(120, 30, True)})
    tracker = ChangeHistoryTracker(history, extensions=[".ts"])

    changes = tracker.track(30)

    assert list(changes) == ["src/foo.ts"]
    change = changes["src/foo.ts"]
    assert [record.message for record in change.records] == ["second", "first"]
    assert change.latest.timestamp == days_ago(2)
    assert change.lines_changed == 150
    assert change.impact is ImpactTier.HIGH
    assert change.breaking is True
    assert history.windows == [timedelta(days=30)]
    assert latest_change_times(changes) == {"src/foo.ts": days_ago(2)}


class _BrokenHistory:
    name = "git"

    def changed_files_since(self, window: timedelta) -> List[ChangeRecord]:
        raise HistoryUnavailable("git log failed")

    def diff_stats(self, path, records):  # type: ignore[no-untyped-def]
        raise AssertionError("diff_stats must not be called on the failed history")


def test_tracker_degrades_to_fallback_history() -> None:
    files = [SourceFile(path="src/foo.ts", last_modified=days_ago(1), size=10)]
    fallback = FileTimeChangeHistory(files, clock=lambda: NOW)
    tracker = ChangeHistoryTracker(_BrokenHistory(), fallback=fallback)

    changes = tracker.track(7)

    assert tracker.mode == "file-time"
    assert changes["src/foo.ts"].impact is ImpactTier.UNKNOWN
    assert changes["src/foo.ts"].lines_changed == 0


def test_tracker_without_fallback_propagates_failure() -> None:
    with pytest.raises(HistoryUnavailable):
        ChangeHistoryTracker(_BrokenHistory()).track(7)


def test_sort_by_impact_orders_tiers_then_paths() -> None:
    history = StaticChangeHistory(
        [
            ChangeRecord(path="b.ts", commit="1" * 7, timestamp=days_ago(1)),
            ChangeRecord(path="a.ts", commit="1" * 7, timestamp=days_ago(1)),
            ChangeRecord(path="c.ts", commit="1" * 7, timestamp=days_ago(1)),
            ChangeRecord(path="d.ts", commit="1" * 7, timestamp=days_ago(1)),
        ],
        {"a.ts": DiffStats(5, 0, False), "b.ts": DiffStats(200, 0, False), "c.ts": DiffStats(30, 0, False)},
    )

    ordered = sort_by_impact(ChangeHistoryTracker(history).track(7).values())

    assert [(change.path, change.impact.value) for change in ordered] == [
        ("b.ts", "high"),
        ("c.ts", "medium"),
        ("a.ts", "low"),
        ("d.ts", "unknown"),
    ]
