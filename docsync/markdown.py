"""Minimal Markdown scanning helpers: fenced blocks, inline code and headings."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List

from .models import Heading

_FENCE_PATTERN = re.compile(r"^\s{0,3}(`{3,}|~{3,})\s*([\w+#.-]*)")
_INLINE_CODE_PATTERN = re.compile(r"(`+)(.+?)(?<!`)\1(?!`)")
_HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")


@dataclass(frozen=True)
class FencedBlock:
    """A fenced code region. ``closed`` is False for an unterminated fence."""

    language: str
    body: str
    start_line: int
    closed: bool


@dataclass(frozen=True)
class CodeRegion:
    """Text of one code region (fenced block body or inline span) in document order."""

    text: str
    line: int
    fenced: bool


def iter_fenced_blocks(text: str) -> Iterator[FencedBlock]:
    lines = text.splitlines()
    index = 0
    while index < len(lines):
        match = _FENCE_PATTERN.match(lines[index])
        if not match:
            index += 1
            continue
        marker = match.group(1)
        language = match.group(2).lower()
        start = index
        body: List[str] = []
        index += 1
        closed = False
        while index < len(lines):
            stripped = lines[index].strip()
            if stripped.startswith(marker[0] * len(marker)) and not stripped.lstrip(marker[0]):
                closed = True
                index += 1
                break
            body.append(lines[index])
            index += 1
        yield FencedBlock(
            language=language, body="\n".join(body), start_line=start + 1, closed=closed
        )


def iter_code_regions(text: str) -> Iterator[CodeRegion]:
    """Yield fenced block bodies and inline code spans in document order.

    An unterminated fence runs to the end of the text; its remainder is one
    fenced region, matching what :func:`prose_lines` treats as code.
    """
    lines = text.splitlines()
    index = 0
    while index < len(lines):
        line = lines[index]
        match = _FENCE_PATTERN.match(line)
        if match:
            marker = match.group(1)
            body: List[str] = []
            cursor = index + 1
            while cursor < len(lines):
                stripped = lines[cursor].strip()
                if stripped.startswith(marker[0] * len(marker)) and not stripped.lstrip(marker[0]):
                    break
                body.append(lines[cursor])
                cursor += 1
            yield CodeRegion(text="\n".join(body), line=index + 2, fenced=True)
            index = cursor + 1
            continue
        for span in _INLINE_CODE_PATTERN.finditer(line):
            content = span.group(2).strip()
            if content:
                yield CodeRegion(text=content, line=index + 1, fenced=False)
        index += 1


def prose_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield ``(line_number, line)`` for lines outside fenced code."""
    in_code = False
    marker = ""
    for number, line in enumerate(text.splitlines(), start=1):
        match = _FENCE_PATTERN.match(line)
        if in_code:
            stripped = line.strip()
            if stripped.startswith(marker) and not stripped.lstrip(marker[0]):
                in_code = False
            continue
        if match:
            in_code = True
            marker = match.group(1)
            continue
        yield number, line


def extract_headings(text: str) -> List[Heading]:
    headings: List[Heading] = []
    for number, line in prose_lines(text):
        match = _HEADING_PATTERN.match(line)
        if match:
            headings.append(Heading(text=match.group(2).strip(), level=len(match.group(1)), line=number))
    return headings


__all__ = [
    "CodeRegion",
    "FencedBlock",
    "extract_headings",
    "iter_code_regions",
    "iter_fenced_blocks",
    "prose_lines",
]
