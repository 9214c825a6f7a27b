"""Version-control history access and change tracking."""

from .history import (
    ChangeHistory,
    FileTimeChangeHistory,
    GitChangeHistory,
    HistoryUnavailable,
    select_history,
)
from .tracker import ChangeHistoryTracker, classify_change

__all__ = [
    "ChangeHistory",
    "ChangeHistoryTracker",
    "FileTimeChangeHistory",
    "GitChangeHistory",
    "HistoryUnavailable",
    "classify_change",
    "select_history",
]
