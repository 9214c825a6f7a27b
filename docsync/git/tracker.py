"""Group change records per file and classify their impact."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence

from ..logging import get_logger
from ..models import ChangeRecord, ChangeType, DiffStats, FileChange, ImpactTier
from .history import ChangeHistory, HistoryUnavailable

HIGH_IMPACT_LINES = 100
MEDIUM_IMPACT_LINES = 20

IMPACT_ORDER = {
    ImpactTier.HIGH: 0,
    ImpactTier.MEDIUM: 1,
    ImpactTier.LOW: 2,
    ImpactTier.UNKNOWN: 3,
}

logger = get_logger("git.tracker")


def classify_change(stats: Optional[DiffStats]) -> tuple[ChangeType, ImpactTier]:
    """Return the change type and impact tier for aggregate diff stats."""
    if stats is None:
        return ChangeType.MODIFIED, ImpactTier.UNKNOWN
    if stats.lines_added > 0 and stats.lines_removed == 0:
        change_type = ChangeType.ADDED
    elif stats.lines_removed > 0 and stats.lines_added == 0:
        change_type = ChangeType.DELETED
    else:
        change_type = ChangeType.MODIFIED
    if stats.breaking or stats.total > HIGH_IMPACT_LINES:
        impact = ImpactTier.HIGH
    elif stats.total > MEDIUM_IMPACT_LINES:
        impact = ImpactTier.MEDIUM
    else:
        impact = ImpactTier.LOW
    return change_type, impact


def group_by_file(records: Iterable[ChangeRecord]) -> Dict[str, List[ChangeRecord]]:
    """Group records per path, newest first within each group."""
    grouped: Dict[str, List[ChangeRecord]] = {}
    for record in records:
        grouped.setdefault(record.path, []).append(record)
    for path_records in grouped.values():
        path_records.sort(key=lambda record: record.timestamp, reverse=True)
    return grouped


class ChangeHistoryTracker:
    """Builds per-file change summaries from a history capability.

    When the primary history raises :class:`HistoryUnavailable`, the tracker
    switches to ``fallback`` for the rest of its lifetime.
    """

    def __init__(
        self,
        history: ChangeHistory,
        *,
        fallback: ChangeHistory | None = None,
        extensions: Sequence[str] | None = None,
    ) -> None:
        self._history = history
        self._fallback = fallback
        self._extensions = {ext.lower() for ext in extensions} if extensions is not None else None

    @property
    def mode(self) -> str:
        return self._history.name

    def track(self, window_days: int) -> Dict[str, FileChange]:
        records = self._records(timedelta(days=window_days))
        changes: Dict[str, FileChange] = {}
        for path, path_records in sorted(group_by_file(records).items()):
            if self._extensions is not None and PurePosixPath(path).suffix.lower() not in self._extensions:
                continue
            stats = self._history.diff_stats(path, path_records)
            change_type, impact = classify_change(stats)
            changes[path] = FileChange(
                path=path,
                records=path_records,
                change_type=change_type,
                impact=impact,
                lines_added=stats.lines_added if stats else 0,
                lines_removed=stats.lines_removed if stats else 0,
                breaking=stats.breaking if stats else False,
            )
        logger.debug("Tracked %d changed files via %s history", len(changes), self.mode)
        return changes

    def _records(self, window: timedelta) -> List[ChangeRecord]:
        try:
            return self._history.changed_files_since(window)
        except HistoryUnavailable as exc:
            if self._fallback is None:
                raise
            logger.warning("%s; falling back to %s history", exc, self._fallback.name)
            self._history = self._fallback
            self._fallback = None
            return self._history.changed_files_since(window)


def latest_change_times(changes: Dict[str, FileChange]) -> Dict[str, datetime]:
    return {path: change.latest.timestamp for path, change in changes.items()}


def sort_by_impact(changes: Iterable[FileChange]) -> List[FileChange]:
    return sorted(changes, key=lambda change: (IMPACT_ORDER[change.impact], change.path))


__all__ = [
    "ChangeHistoryTracker",
    "IMPACT_ORDER",
    "classify_change",
    "group_by_file",
    "latest_change_times",
    "sort_by_impact",
]
