"""History capabilities: where change records come from.

``GitChangeHistory`` reads ``git log``/``git diff``. ``FileTimeChangeHistory``
is the degraded alternative used when version control is unavailable: it
reports file modification times only, without line counts.
"""

from __future__ import annotations

import re
import subprocess
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

from ..logging import get_logger
from ..models import ChangeRecord, DiffStats, SourceFile
from .runner import CommandRunner, default_runner, inside_work_tree

# Hash of the empty tree object; diffing against it shows a root commit's content.
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

_COMMIT_LINE = re.compile(r"^([0-9a-f]{7,64})\|(\d+)\|(.*)$")
_BREAKING_PATTERN = re.compile(
    r"\bexport\b|\bfunction\b.*\(|\bclass\s+\w+|\binterface\s+\w+|\bdef\s+\w+\s*\("
)

logger = get_logger("git.history")


class HistoryUnavailable(RuntimeError):
    """Raised when the version-control history cannot be queried."""


class ChangeHistory(Protocol):
    """Capability consumed by the change tracker."""

    name: str

    def changed_files_since(self, window: timedelta) -> List[ChangeRecord]:
        """Return change records inside the trailing window, newest first."""

    def diff_stats(self, path: str, records: Sequence[ChangeRecord]) -> Optional[DiffStats]:
        """Aggregate line counts across ``records`` (newest first), or None if unknown."""


def summarize_diff(diff: str) -> DiffStats:
    """Count changed lines in a unified diff and look for definition-shaped edits."""
    added = removed = 0
    breaking = False
    in_hunk = False
    for line in diff.splitlines():
        if line.startswith("diff --git"):
            in_hunk = False
            continue
        if line.startswith("@@"):
            in_hunk = True
            continue
        if not in_hunk:
            continue
        if line.startswith("+"):
            added += 1
        elif line.startswith("-"):
            removed += 1
        else:
            continue
        if not breaking and _BREAKING_PATTERN.search(line[1:]):
            breaking = True
    return DiffStats(lines_added=added, lines_removed=removed, breaking=breaking)


class GitChangeHistory:
    """Reads change records from ``git log`` in a working tree."""

    name = "git"

    def __init__(self, root: Path, runner: CommandRunner | None = None) -> None:
        self._root = Path(root)
        self._runner = runner or default_runner

    def changed_files_since(self, window: timedelta) -> List[ChangeRecord]:
        days = max(1, int(window.total_seconds() // 86400))
        args = [
            "git",
            "log",
            f"--since={days} days ago",
            "--name-only",
            "--pretty=format:%H|%at|%s",
        ]
        try:
            output = self._runner(args, cwd=self._root, capture_output=True)
        except (subprocess.CalledProcessError, OSError) as exc:
            raise HistoryUnavailable(f"git log failed: {exc}") from exc
        return parse_log(output)

    def diff_stats(self, path: str, records: Sequence[ChangeRecord]) -> Optional[DiffStats]:
        if not records:
            return None
        newest = records[0].commit
        oldest = records[-1].commit
        for base in (f"{oldest}~1", EMPTY_TREE):
            try:
                diff = self._runner(
                    ["git", "diff", base, newest, "--", path],
                    cwd=self._root,
                    capture_output=True,
                )
            except (subprocess.CalledProcessError, OSError) as exc:
                logger.debug("git diff %s..%s failed for %s: %s", base, newest, path, exc)
                continue
            return summarize_diff(diff)
        return None


def parse_log(output: str) -> List[ChangeRecord]:
    """Parse ``git log --name-only --pretty=format:%H|%at|%s`` output."""
    records: List[ChangeRecord] = []
    commit: Optional[tuple[str, datetime, str]] = None
    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue
        header = _COMMIT_LINE.match(line)
        if header:
            commit = (
                header.group(1),
                datetime.fromtimestamp(int(header.group(2)), UTC),
                header.group(3),
            )
            continue
        if commit is None:
            continue
        records.append(
            ChangeRecord(path=line, commit=commit[0], timestamp=commit[1], message=commit[2])
        )
    return records


class FileTimeChangeHistory:
    """Degraded history built from file modification times.

    Every file modified inside the window yields one record; line counts
    are unknown so ``diff_stats`` always returns None.
    """

    name = "file-time"

    def __init__(
        self,
        files: Sequence[SourceFile],
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._files = list(files)
        self._clock = clock or (lambda: datetime.now(UTC))

    def changed_files_since(self, window: timedelta) -> List[ChangeRecord]:
        cutoff = self._clock() - window
        records = [
            ChangeRecord(path=file.path, commit="", timestamp=file.last_modified)
            for file in self._files
            if file.last_modified >= cutoff
        ]
        records.sort(key=lambda record: record.timestamp, reverse=True)
        return records

    def diff_stats(self, path: str, records: Sequence[ChangeRecord]) -> Optional[DiffStats]:
        return None


def select_history(
    root: Path,
    files: Sequence[SourceFile],
    *,
    use_git: bool = True,
    runner: CommandRunner | None = None,
    clock: Callable[[], datetime] | None = None,
) -> ChangeHistory:
    """Pick git history when available, otherwise the file-time fallback."""
    runner = runner or default_runner
    if use_git and inside_work_tree(root, runner):
        return GitChangeHistory(root, runner=runner)
    if use_git:
        logger.warning("Not a git repository. Using file modification times instead.")
    return FileTimeChangeHistory(files, clock=clock)


__all__ = [
    "ChangeHistory",
    "FileTimeChangeHistory",
    "GitChangeHistory",
    "HistoryUnavailable",
    "parse_log",
    "select_history",
    "summarize_diff",
]
