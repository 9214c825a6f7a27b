"""Resolve extracted references to concrete source files."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..logging import get_logger
from ..models import DocumentFile, Pointer, Reference, ReferenceKind
from ..repo_scanner import SourceIndex, file_stem
from .extractor import ReferenceExtractor

_DEFINITION_KEYWORDS = r"(?:class|interface|function|def|fn)"

logger = get_logger("pointers.resolver")


@dataclass(frozen=True)
class Match:
    """A single reference-to-file resolution and its human-readable reason."""

    source: str
    reason: str


class SourceResolver:
    """Maps references onto the run's source files.

    Path literals match permissively: a file matches when its path contains
    the literal, or when the extension-stripped basenames are equal. Either
    condition alone is enough, so files sharing a basename in different
    directories all match.
    """

    def __init__(self, index: SourceIndex) -> None:
        self._index = index
        self._symbol_patterns: Dict[str, re.Pattern[str]] = {}

    def resolve(self, reference: Reference) -> List[Match]:
        if reference.kind is ReferenceKind.PATH:
            return self._resolve_path(reference)
        return self._resolve_symbol(reference)

    def _resolve_path(self, reference: Reference) -> List[Match]:
        value = reference.value
        verb = "imports" if reference.detail == "import" else "mentions"
        reason = f"{verb} {value}"
        matched = {path for path in self._index.paths if value in path}
        stem = file_stem(value)
        if stem:
            matched.update(self._index.with_stem(stem))
        return [Match(source=path, reason=reason) for path in sorted(matched)]

    def _resolve_symbol(self, reference: Reference) -> List[Match]:
        pattern = self._symbol_patterns.get(reference.value)
        if pattern is None:
            pattern = re.compile(rf"\b{_DEFINITION_KEYWORDS}\s+{re.escape(reference.value)}(?![\w$])")
            self._symbol_patterns[reference.value] = pattern
        kind = reference.detail or "symbol"
        reason = f"defines {kind} {reference.value}"
        return [
            Match(source=path, reason=reason)
            for path in self._index.paths
            if pattern.search(self._index.text(path))
        ]


@dataclass
class PointerMap:
    """Document -> source -> reasons, plus optional last-validated stamps.

    ``unresolved`` lists, per document, reference values that matched no
    source file; they are findings, not errors.
    """

    mappings: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)
    validated: Dict[str, Dict[str, datetime]] = field(default_factory=dict)
    unresolved: Dict[str, List[str]] = field(default_factory=dict)

    def pointers(self) -> List[Pointer]:
        result: List[Pointer] = []
        for document in sorted(self.mappings):
            for source in sorted(self.mappings[document]):
                result.append(
                    Pointer(
                        document=document,
                        source=source,
                        reasons=tuple(self.mappings[document][source]),
                        last_validated=self.validated.get(document, {}).get(source),
                    )
                )
        return result

    def for_document(self, document: str) -> List[Pointer]:
        return [pointer for pointer in self.pointers() if pointer.document == document]

    def sources_for(self, document: str) -> List[str]:
        return sorted(self.mappings.get(document, {}))

    def documents_for(self, source: str) -> List[str]:
        return sorted(doc for doc, targets in self.mappings.items() if source in targets)

    def all_sources(self) -> List[str]:
        return sorted({source for targets in self.mappings.values() for source in targets})

    def carry_validation(self, prior: Optional["PointerMap"]) -> None:
        """Keep prior stamps for pairs that still resolve; drop the rest."""
        if prior is None:
            return
        carried: Dict[str, Dict[str, datetime]] = {}
        for document, stamps in prior.validated.items():
            targets = self.mappings.get(document, {})
            kept = {source: stamp for source, stamp in stamps.items() if source in targets}
            if kept:
                carried[document] = kept
        self.validated = carried

    def with_prior(self, prior: "PointerMap", keep: Callable[[str, str], bool]) -> "PointerMap":
        """Return a copy that also holds the prior ``(document, source)`` pairs ``keep`` selects."""
        merged = PointerMap(
            mappings={document: dict(targets) for document, targets in self.mappings.items()},
            validated={document: dict(stamps) for document, stamps in self.validated.items()},
            unresolved={document: list(values) for document, values in self.unresolved.items()},
        )
        for document, targets in prior.mappings.items():
            for source, reasons in targets.items():
                if source in merged.mappings.get(document, {}) or not keep(document, source):
                    continue
                merged.mappings.setdefault(document, {})[source] = list(reasons)
                stamp = prior.validated.get(document, {}).get(source)
                if stamp is not None:
                    merged.validated.setdefault(document, {})[source] = stamp
        return merged

    def mark_validated(self, document: str, at: datetime, sources: Optional[Iterable[str]] = None) -> List[str]:
        targets = self.mappings.get(document)
        if targets is None:
            raise KeyError(document)
        selected = list(targets) if sources is None else [s for s in sources if s in targets]
        stamps = self.validated.setdefault(document, {})
        for source in selected:
            stamps[source] = at
        return sorted(selected)


def build_pointer_map(
    documents: Sequence[DocumentFile],
    index: SourceIndex,
    *,
    extractor: ReferenceExtractor | None = None,
    resolver: SourceResolver | None = None,
) -> PointerMap:
    """Extract, resolve and group pointers for every document.

    Documents without any resolved pointer are omitted from the map.
    """
    extractor = extractor or ReferenceExtractor()
    resolver = resolver or SourceResolver(index)
    pointer_map = PointerMap()
    for document in documents:
        grouped: Dict[str, List[str]] = {}
        misses: List[str] = []
        for reference in extractor.extract(document.text):
            matches = resolver.resolve(reference)
            if not matches:
                misses.append(reference.value)
                continue
            for match in matches:
                reasons = grouped.setdefault(match.source, [])
                if match.reason not in reasons:
                    reasons.append(match.reason)
        if grouped:
            pointer_map.mappings[document.name] = {source: grouped[source] for source in sorted(grouped)}
        if misses:
            logger.debug("%s: %d references matched no source file", document.name, len(misses))
            pointer_map.unresolved[document.name] = misses
    return pointer_map


__all__ = ["Match", "PointerMap", "SourceResolver", "build_pointer_map"]
