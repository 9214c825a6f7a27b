"""Extract candidate source references from documentation text."""

from __future__ import annotations

import re
from typing import Dict, List, Pattern, Sequence, Set, Tuple

from ..config import DEFAULT_SOURCE_EXTENSIONS
from ..markdown import iter_code_regions
from ..models import Reference, ReferenceKind

_URL_PATTERN = re.compile(r"\b[a-zA-Z][\w+.-]*://\S+")
_IMPORT_PATTERN = re.compile(r"(?:\bfrom|\bimport|\brequire)\s*\(?\s*['\"]([^'\"\n]+)['\"]")
_PATH_TOKEN_PATTERN = re.compile(r"(?<![\w./@-])((?:\.{1,2}/)?(?:[\w@.-]+/)+[\w@.-]*)")
_DEFINITION_PATTERN = re.compile(r"\b(class|interface|function|def|fn)\s+([A-Za-z_$][\w$]*)")

_SYMBOL_KINDS = {
    "class": "class",
    "interface": "class",
    "function": "function",
    "def": "function",
    "fn": "function",
}


def _extension_group(extensions: Sequence[str]) -> str:
    cleaned = sorted({ext.lstrip(".").lower() for ext in extensions if ext.strip(".")}, key=len, reverse=True)
    return "|".join(re.escape(ext) for ext in cleaned)


class ReferenceExtractor:
    """Finds path literals and symbol definitions inside code regions.

    Three pattern families run independently over every fenced block body
    and inline code span: quoted or imported paths, path-like tokens, and
    class/function definitions. Matches never span two regions. The result
    keeps first-seen order and collapses duplicate ``(kind, value)`` pairs.
    """

    def __init__(self, extensions: Sequence[str] = DEFAULT_SOURCE_EXTENSIONS) -> None:
        group = _extension_group(extensions)
        self._quoted_path: Pattern[str] = re.compile(rf"['\"]([^'\"\s]+\.(?:{group}))['\"]")
        self._bare_file: Pattern[str] = re.compile(rf"(?<![\w./@-])([\w.-]+\.(?:{group}))\b")

    def extract(self, text: str) -> List[Reference]:
        references: List[Reference] = []
        seen: Set[Tuple[ReferenceKind, str]] = set()
        for region in iter_code_regions(text):
            for reference in self._extract_region(region.text):
                if reference.key in seen:
                    continue
                seen.add(reference.key)
                references.append(reference)
        return references

    def _extract_region(self, text: str) -> List[Reference]:
        scrubbed = _URL_PATTERN.sub(lambda match: " " * len(match.group(0)), text)
        found: List[Tuple[int, int, Reference]] = []

        for match in _IMPORT_PATTERN.finditer(scrubbed):
            found.append((match.start(), 0, _path(match.group(1), "import")))
        for match in self._quoted_path.finditer(scrubbed):
            found.append((match.start(), 0, _path(match.group(1), "import")))

        for match in _PATH_TOKEN_PATTERN.finditer(scrubbed):
            token = _clean_token(match.group(1))
            if token:
                found.append((match.start(), 1, _path(token, "path")))
        for match in self._bare_file.finditer(scrubbed):
            token = _clean_token(match.group(1))
            if token:
                found.append((match.start(), 1, _path(token, "path")))

        for match in _DEFINITION_PATTERN.finditer(scrubbed):
            found.append(
                (
                    match.start(),
                    2,
                    Reference(
                        kind=ReferenceKind.SYMBOL,
                        value=match.group(2),
                        detail=_SYMBOL_KINDS[match.group(1)],
                    ),
                )
            )

        found.sort(key=lambda item: (item[0], item[1]))
        ordered: Dict[Tuple[ReferenceKind, str], Reference] = {}
        for _, _, reference in found:
            ordered.setdefault(reference.key, reference)
        return list(ordered.values())


def _path(value: str, detail: str) -> Reference:
    return Reference(kind=ReferenceKind.PATH, value=value.strip(), detail=detail)


def _clean_token(token: str) -> str:
    cleaned = token.rstrip(".,;:")
    if not cleaned or not any(char.isalpha() for char in cleaned):
        return ""
    return cleaned


def extract_references(text: str, extensions: Sequence[str] = DEFAULT_SOURCE_EXTENSIONS) -> List[Reference]:
    """Convenience wrapper around :class:`ReferenceExtractor`."""
    return ReferenceExtractor(extensions).extract(text)


__all__ = ["ReferenceExtractor", "extract_references"]
