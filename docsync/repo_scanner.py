"""Source enumeration and the per-run source index."""

from __future__ import annotations

import os
import subprocess
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from .git.runner import CommandRunner, default_runner, inside_work_tree
from .logging import get_logger
from .models import SourceFile

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    "dist",
    "build",
    "out",
    ".next",
    "coverage",
}

logger = get_logger("repo_scanner")


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or .docsync.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            if self.directory_only and rel_path.startswith(f"{self.pattern}/"):
                return True
            return False

        for part in rel_path.split("/"):
            if fnmatchcase(part, self.pattern):
                return True
        return False


def build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _is_excluded_file(rel_path: str, rules: Sequence[IgnoreRule]) -> bool:
    """Check a file path and each of its parent directories against the rules."""
    parts = rel_path.split("/")
    for depth in range(1, len(parts)):
        if _should_ignore("/".join(parts[:depth]), True, rules):
            return True
    return _should_ignore(rel_path, False, rules)


def _walk_files(root: Path, rules: Sequence[IgnoreRule]) -> Iterator[str]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept_dirs = []
        for name in dirnames:
            if name in _EXCLUDED_DIRS:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if _should_ignore(rel_path, True, rules):
                continue
            kept_dirs.append(name)
        dirnames[:] = sorted(kept_dirs)

        for filename in sorted(filenames):
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _should_ignore(rel_path, False, rules):
                continue
            yield rel_path


def has_extension(path: str, extensions: Iterable[str]) -> bool:
    suffix = PurePosixPath(path).suffix.lower()
    return bool(suffix) and suffix in set(extensions)


def file_stem(path: str) -> str:
    """Return the basename of ``path`` with its final extension stripped."""
    return PurePosixPath(path.rstrip("/")).stem


class SourceScanner:
    """Enumerates source files under a repository root."""

    def __init__(self, runner: CommandRunner | None = None) -> None:
        self._runner = runner or default_runner

    def scan(
        self,
        root: Path,
        extensions: Sequence[str],
        *,
        exclude_paths: Sequence[str] = (),
    ) -> List[SourceFile]:
        """Return a sorted snapshot of existing files with one of ``extensions``."""
        root = Path(root).expanduser().resolve()
        if not root.is_dir():
            raise FileNotFoundError(f"Repository path not found: {root}")

        config_rules = [rule for rule in (build_ignore_rule(p) for p in exclude_paths) if rule]
        candidates = self._git_files(root)
        if candidates is None:
            rules = _parse_gitignore(root / ".gitignore") + config_rules
            candidates = list(_walk_files(root, rules))
        else:
            candidates = [
                path
                for path in candidates
                if not any(part in _EXCLUDED_DIRS for part in path.split("/")[:-1])
                and not _is_excluded_file(path, config_rules)
            ]

        files: List[SourceFile] = []
        for rel_path in sorted(set(candidates)):
            if not has_extension(rel_path, extensions):
                continue
            try:
                stat_result = (root / rel_path).stat()
            except OSError:
                # Listed by git but deleted from the working tree.
                continue
            files.append(
                SourceFile(
                    path=rel_path,
                    last_modified=datetime.fromtimestamp(stat_result.st_mtime, UTC),
                    size=stat_result.st_size,
                )
            )
        logger.debug("Enumerated %d source files under %s", len(files), root)
        return files

    def _git_files(self, root: Path) -> Optional[List[str]]:
        if not inside_work_tree(root, self._runner):
            return None
        try:
            output = self._runner(["git", "ls-files"], cwd=root, capture_output=True)
        except (subprocess.CalledProcessError, OSError) as exc:
            logger.debug("git ls-files failed, walking the tree instead: %s", exc)
            return None
        paths = [line.strip() for line in output.splitlines() if line.strip()]
        return paths or None


class SourceIndex:
    """In-memory view over one run's source files.

    File text is read lazily and cached for the lifetime of the index only;
    nothing is persisted between runs.
    """

    def __init__(self, root: Path, files: Sequence[SourceFile]) -> None:
        self.root = Path(root)
        self.files: List[SourceFile] = list(files)
        self._by_path: Dict[str, SourceFile] = {file.path: file for file in self.files}
        self._by_stem: Dict[str, List[str]] = defaultdict(list)
        for file in self.files:
            self._by_stem[file_stem(file.path)].append(file.path)
        self._text_cache: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self.files)

    def __contains__(self, path: object) -> bool:
        return path in self._by_path

    @property
    def paths(self) -> List[str]:
        return [file.path for file in self.files]

    def get(self, path: str) -> Optional[SourceFile]:
        return self._by_path.get(path)

    def with_stem(self, stem: str) -> List[str]:
        return list(self._by_stem.get(stem, ()))

    def text(self, path: str) -> str:
        cached = self._text_cache.get(path)
        if cached is not None:
            return cached
        try:
            content = (self.root / path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Skipping unreadable source file %s: %s", path, exc)
            content = ""
        self._text_cache[path] = content
        return content


__all__ = ["IgnoreRule", "SourceIndex", "SourceScanner", "file_stem", "has_extension"]
