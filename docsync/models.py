"""Core data models shared across docsync components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple


class ReferenceKind(str, Enum):
    """Kinds of references extracted from documentation text."""

    PATH = "path-literal"
    SYMBOL = "symbol-name"


class RiskTier(str, Enum):
    """Staleness risk tiers, ordered from harmless to urgent."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def is_stale(self) -> bool:
        return self not in (RiskTier.NONE, RiskTier.LOW)


class ImpactTier(str, Enum):
    """Coarse classification of how consequential a source change is."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNKNOWN = "unknown"


class ChangeType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True)
class SourceFile:
    """Snapshot of a source file taken at the start of a run."""

    path: str
    last_modified: datetime
    size: int


@dataclass(frozen=True)
class Heading:
    """Markdown section heading with its nesting level and 1-based line."""

    text: str
    level: int
    line: int


@dataclass
class DocumentFile:
    """A documentation file and the structural signals derived from it."""

    path: str
    name: str
    last_modified: datetime
    text: str
    headings: List[Heading] = field(default_factory=list)
    word_count: int = 0
    code_block_count: int = 0
    completeness: float = 0.0

    @property
    def section_count(self) -> int:
        return len(self.headings)


@dataclass(frozen=True)
class Reference:
    """Candidate source identifier found in documentation text.

    Identity is the ``(kind, value)`` pair. ``detail`` records how the
    reference was found (``import``/``path`` for path literals, ``class``/
    ``function`` for symbols) and feeds the pointer reason text only.
    """

    kind: ReferenceKind
    value: str
    detail: str = ""

    @property
    def key(self) -> Tuple[ReferenceKind, str]:
        return (self.kind, self.value)


@dataclass(frozen=True)
class Pointer:
    """Resolved link between one document and one source file."""

    document: str
    source: str
    reasons: Tuple[str, ...]
    last_validated: Optional[datetime] = None


@dataclass(frozen=True)
class ChangeRecord:
    """One commit (or file-time observation) touching a source file."""

    path: str
    commit: str
    timestamp: datetime
    message: str = ""
    lines_added: int = 0
    lines_removed: int = 0
    breaking: bool = False


@dataclass(frozen=True)
class DiffStats:
    """Aggregate line counts for a file across a span of history."""

    lines_added: int
    lines_removed: int
    breaking: bool

    @property
    def total(self) -> int:
        return self.lines_added + self.lines_removed


@dataclass
class FileChange:
    """Grouped and classified history for a single source file."""

    path: str
    records: List[ChangeRecord]
    change_type: ChangeType
    impact: ImpactTier
    lines_added: int = 0
    lines_removed: int = 0
    breaking: bool = False
    affected_documents: FrozenSet[str] = frozenset()

    @property
    def lines_changed(self) -> int:
        return self.lines_added + self.lines_removed

    @property
    def latest(self) -> ChangeRecord:
        return self.records[0]


__all__ = [
    "ChangeRecord",
    "ChangeType",
    "DiffStats",
    "DocumentFile",
    "FileChange",
    "Heading",
    "ImpactTier",
    "Pointer",
    "Reference",
    "ReferenceKind",
    "RiskTier",
    "SourceFile",
]
