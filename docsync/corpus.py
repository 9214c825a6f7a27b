"""Documentation corpus loading and document-only completeness scoring."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import List

from .logging import get_logger
from .markdown import extract_headings, iter_fenced_blocks
from .models import DocumentFile

COMPLETE_THRESHOLD = 0.7

logger = get_logger("corpus")


class MissingPrerequisiteError(FileNotFoundError):
    """Raised when the documentation root or a required prior report is absent."""


def completeness_score(*, heading_count: int, word_count: int, code_block_count: int) -> float:
    """Score a document from its own structure; code is never inspected."""
    score = 0.0
    if heading_count > 0:
        score += 0.3
    if word_count > 200:
        score += 0.3
    if code_block_count > 0:
        score += 0.2
    if word_count > 500:
        score += 0.2
    return round(min(1.0, score), 2)


def analyze_document(path: Path, *, relative_to: Path) -> DocumentFile:
    text = path.read_text(encoding="utf-8")
    headings = extract_headings(text)
    word_count = len(text.split())
    code_block_count = sum(1 for block in iter_fenced_blocks(text) if block.closed)
    try:
        rel_path = path.relative_to(relative_to).as_posix()
    except ValueError:
        rel_path = path.as_posix()
    return DocumentFile(
        path=rel_path,
        name=path.name,
        last_modified=datetime.fromtimestamp(path.stat().st_mtime, UTC),
        text=text,
        headings=headings,
        word_count=word_count,
        code_block_count=code_block_count,
        completeness=completeness_score(
            heading_count=len(headings),
            word_count=word_count,
            code_block_count=code_block_count,
        ),
    )


def load_corpus(docs_dir: Path, *, root: Path) -> List[DocumentFile]:
    """Load every Markdown file directly inside ``docs_dir``, sorted by name."""
    if not docs_dir.is_dir():
        raise MissingPrerequisiteError(f"Documentation directory not found: {docs_dir}")

    documents: List[DocumentFile] = []
    for path in sorted(docs_dir.glob("*.md")):
        if not path.is_file():
            continue
        try:
            documents.append(analyze_document(path, relative_to=root))
        except UnicodeDecodeError as exc:
            logger.warning("Skipping %s: not valid UTF-8 (%s)", path.name, exc)
    logger.debug("Loaded %d documents from %s", len(documents), docs_dir)
    return documents


__all__ = [
    "COMPLETE_THRESHOLD",
    "MissingPrerequisiteError",
    "analyze_document",
    "completeness_score",
    "load_corpus",
]
