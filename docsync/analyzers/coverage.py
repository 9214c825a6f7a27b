"""Coverage of source files by documentation pointers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from pathlib import PurePosixPath
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from ..logging import get_logger
from ..repo_scanner import SourceIndex, file_stem, has_extension
from ..stores.reports import format_timestamp

HIGH_USAGE = 10
MEDIUM_USAGE = 5

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

# Checked in order; the first keyword found in the lowercased basename wins.
_FILE_TYPES = (
    ("test", ("test", "spec")),
    ("utility", ("util", "helper")),
    ("config", ("config",)),
    ("api", ("route", "controller")),
    ("model", ("model",)),
    ("component", ("component",)),
)

_JS_EXPORT = re.compile(r"export\s+(?:function|const|let|var|class)\s+(\w+)")
_PY_EXPORT = re.compile(r"^(?:def|class)\s+([A-Za-z]\w*)", re.MULTILINE)
_JS_SUFFIXES = {".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"}

logger = get_logger("analyzers.coverage")


def detect_file_type(path: str) -> str:
    name = PurePosixPath(path).name.lower()
    for file_type, keywords in _FILE_TYPES:
        if any(keyword in name for keyword in keywords):
            return file_type
    return "module"


def parse_exports(path: str, text: str) -> List[str]:
    suffix = PurePosixPath(path).suffix.lower()
    exports: List[str] = []
    if suffix in _JS_SUFFIXES:
        exports.extend(_JS_EXPORT.findall(text))
        if "export default" in text:
            exports.append("default")
    elif suffix == ".py":
        exports.extend(name for name in _PY_EXPORT.findall(text) if not name.startswith("_"))
    return list(dict.fromkeys(exports))


def usage_patterns(stem: str) -> List[re.Pattern[str]]:
    name = re.escape(stem)
    return [
        re.compile(rf"from\s*['\"][^'\"\n]*\b{name}['\"]"),
        re.compile(rf"require\(\s*['\"][^'\"\n]*\b{name}['\"]\s*\)"),
        re.compile(rf"import[^\n]*\b{name}\b"),
        re.compile(rf"^\s*from\s+[\w.]*\b{name}\s+import\b", re.MULTILINE),
    ]


def round_percentage(documented: int, total: int) -> float:
    if total == 0:
        return 0.0
    ratio = Decimal(documented) / Decimal(total)
    return float(ratio.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def usage_priority(usage_count: int) -> str:
    if usage_count > HIGH_USAGE:
        return "high"
    if usage_count > MEDIUM_USAGE:
        return "medium"
    return "low"


@dataclass
class UndocumentedFile:
    path: str
    file_type: str
    exports: List[str]
    usage_count: int
    priority: str
    suggested_location: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.path,
            "type": self.file_type,
            "exports": list(self.exports),
            "usage_count": self.usage_count,
            "priority": self.priority,
            "suggested_location": self.suggested_location,
        }


@dataclass
class CoverageResult:
    documented: List[str] = field(default_factory=list)
    undocumented: List[UndocumentedFile] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.documented) + len(self.undocumented)

    @property
    def percentage(self) -> float:
        return round_percentage(len(self.documented), self.total)

    def to_dict(self, *, generated: datetime) -> Dict[str, Any]:
        return {
            "generated": format_timestamp(generated),
            "coverage_stats": {
                "total_files": self.total,
                "documented_files": len(self.documented),
                "undocumented_files": len(self.undocumented),
                "coverage_percentage": self.percentage,
            },
            "documented": list(self.documented),
            "undocumented": [item.to_dict() for item in self.undocumented],
        }


class CoverageAggregator:
    """Partitions source files into documented and undocumented sets.

    A file is documented when some pointer targets its exact path or a
    path with the same basename. Undocumented files are ranked by how
    often other source files appear to import or mention them.
    """

    def __init__(
        self,
        extensions: Sequence[str],
        *,
        suggested_locations: Mapping[str, str] | None = None,
        docs_prefix: str = "",
    ) -> None:
        self._extensions = list(extensions)
        self._locations = dict(suggested_locations or {})
        self._docs_prefix = docs_prefix.rstrip("/")

    def aggregate(self, index: SourceIndex, pointer_targets: Iterable[str]) -> CoverageResult:
        targets = set(pointer_targets)
        target_names = {PurePosixPath(path).name for path in targets}
        candidates = [path for path in index.paths if has_extension(path, self._extensions)]

        result = CoverageResult()
        for path in candidates:
            if path in targets or PurePosixPath(path).name in target_names:
                result.documented.append(path)
                continue
            usage = self.usage_count(path, index, candidates)
            file_type = detect_file_type(path)
            result.undocumented.append(
                UndocumentedFile(
                    path=path,
                    file_type=file_type,
                    exports=parse_exports(path, index.text(path)),
                    usage_count=usage,
                    priority=usage_priority(usage),
                    suggested_location=self.suggest_location(file_type),
                )
            )
        result.undocumented.sort(key=lambda item: (_PRIORITY_ORDER[item.priority], -item.usage_count, item.path))
        logger.debug(
            "Coverage: %d documented, %d undocumented", len(result.documented), len(result.undocumented)
        )
        return result

    def usage_count(self, path: str, index: SourceIndex, candidates: Sequence[str]) -> int:
        stem = file_stem(path)
        if not stem:
            return 0
        patterns = usage_patterns(stem)
        count = 0
        for other in candidates:
            if other == path:
                continue
            text = index.text(other)
            if not text:
                continue
            count += sum(len(pattern.findall(text)) for pattern in patterns)
        return count

    def suggest_location(self, file_type: str) -> str:
        document = self._locations.get(file_type) or self._locations.get("module", "architecture.md")
        return f"{self._docs_prefix}/{document}" if self._docs_prefix else document


__all__ = [
    "CoverageAggregator",
    "CoverageResult",
    "UndocumentedFile",
    "detect_file_type",
    "parse_exports",
    "round_percentage",
    "usage_priority",
]
