"""Tests for documentation corpus loading and completeness scoring."""

from __future__ import annotations

from pathlib import Path

import pytest

from docsync.corpus import MissingPrerequisiteError, completeness_score, load_corpus
from tests._fixtures.repo_builder import RepoBuilder, days_ago


def _words(count: int) -> str:
    return " ".join(["word"] * count)


@pytest.mark.parametrize(
    ("headings", "words", "blocks", "expected"),
    [
        (0, 10, 0, 0.0),
        (1, 10, 0, 0.3),
        (1, 250, 0, 0.6),
        (1, 250, 1, 0.8),
        (1, 600, 2, 1.0),
        (0, 600, 0, 0.5),
    ],
)
def test_completeness_score(headings: int, words: int, blocks: int, expected: float) -> None:
    score = completeness_score(heading_count=headings, word_count=words, code_block_count=blocks)

    assert score == pytest.approx(expected)


def test_load_corpus_reads_structure(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "context_for_llms/b-api.md": f"""
            # API

            ## Endpoints

            {_words(220)}

            ```ts
            # not a heading
            const x = 1;
            ```
            """,
            "context_for_llms/a-intro.md": "plain text only\n",
            "context_for_llms/notes.txt": "ignored\n",
        }
    )
    repo_builder.touch("context_for_llms/b-api.md", days_ago(3))
    root = repo_builder.path()

    documents = load_corpus(root / "context_for_llms", root=root)

    assert [doc.name for doc in documents] == ["a-intro.md", "b-api.md"]
    api = documents[1]
    assert api.path == "context_for_llms/b-api.md"
    assert api.last_modified == days_ago(3)
    assert [(h.text, h.level, h.line) for h in api.headings] == [("API", 1, 1), ("Endpoints", 2, 3)]
    assert api.section_count == 2
    assert api.code_block_count == 1
    assert api.word_count > 200
    assert api.completeness == pytest.approx(0.8)
    assert documents[0].completeness == pytest.approx(0.0)


def test_load_corpus_skips_undecodable_documents(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"context_for_llms/ok.md": "# Ok\n"})
    (repo_builder.path() / "context_for_llms" / "bad.md").write_bytes(b"\xff\xfe\x00")

    documents = load_corpus(repo_builder.path() / "context_for_llms", root=repo_builder.path())

    assert [doc.name for doc in documents] == ["ok.md"]


def test_load_corpus_requires_docs_directory(tmp_path: Path) -> None:
    with pytest.raises(MissingPrerequisiteError):
        load_corpus(tmp_path / "context_for_llms", root=tmp_path)

    with pytest.raises(FileNotFoundError):
        load_corpus(tmp_path / "context_for_llms", root=tmp_path)
