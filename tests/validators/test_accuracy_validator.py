"""Tests for the accuracy validator and its individual checks."""

from __future__ import annotations

from pathlib import Path

from docsync.config import ValidationConfig
from docsync.corpus import load_corpus
from docsync.pointers import PointerMap
from docsync.validators import (
    AccuracyValidator,
    CodeExampleValidator,
    ProsePathValidator,
    ValidationContext,
)
from tests._fixtures.repo_builder import NOW, RepoBuilder, days_ago


def _context(root: Path, pointer_map: PointerMap, **kwargs) -> ValidationContext:  # type: ignore[no-untyped-def]
    return ValidationContext(
        root=root,
        docs_prefix="context_for_llms",
        documents=load_corpus(root / "context_for_llms", root=root),
        pointer_map=pointer_map,
        extensions=[".ts", ".js", ".py"],
        **kwargs,
    )


def test_stale_validation_emits_error_requiring_review(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/foo.ts": "export const foo = 1;\n",
            "context_for_llms/a.md": "# A\n\nSee `src/foo.ts`.\n",
        }
    )
    pointer_map = PointerMap(
        mappings={"a.md": {"src/foo.ts": ["mentions src/foo.ts"]}},
        validated={"a.md": {"src/foo.ts": days_ago(12)}},
    )
    context = _context(repo_builder.path(), pointer_map, target_times={"src/foo.ts": days_ago(2)})

    report = AccuracyValidator().run(context)
    payload = report.to_dict(generated=NOW)

    stale = [issue for issue in payload["errors"] if issue["type"] == "stale_documentation"]
    assert len(stale) == 1
    finding = stale[0]
    assert finding["severity"] == "error"
    assert finding["requiresAIReview"] is True
    assert finding["docFile"] == "context_for_llms/a.md"
    assert finding["codeFile"] == "src/foo.ts"
    assert finding["lastValidated"] == "2026-09-19T12:00:00Z"
    assert finding["codeModified"] == "2026-09-29T12:00:00Z"
    assert finding["autoFixable"] is False
    assert finding["message"] == "Code changed 10 days after last validation"
    assert payload["validation_results"]["accuracy_score"] == 0.0


def test_deleted_pointer_target_is_a_hard_error(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"context_for_llms/a.md": "# A\n"})
    pointer_map = PointerMap(mappings={"a.md": {"src/gone.ts": ["mentions src/gone.ts"]}})

    report = AccuracyValidator().run(_context(repo_builder.path(), pointer_map))

    assert [(issue.type, issue.code_file, issue.auto_fixable) for issue in report.errors] == [
        ("broken_code_link", "src/gone.ts", False)
    ]
    assert report.passed == 0
    assert report.failed == 1


def test_prose_paths_must_exist(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/real.ts": "export {};\n",
            "context_for_llms/guide.md": """
            # Guide

            Open `src/real.ts:12`, then [the handler](src/missing.ts) and "lib/absent.py".

            ```ts
            import x from "./not-checked.ts";
            ```

            Links like (https://example.com/page.js) are skipped.
            """,
        }
    )
    context = _context(repo_builder.path(), PointerMap())

    issues = ProsePathValidator().validate(context)

    assert [(issue.type, issue.message, issue.line) for issue in issues] == [
        ("broken_reference", "Referenced file does not exist: src/missing.ts", 3),
        ("broken_reference", "Referenced file does not exist: lib/absent.py", 3),
    ]


def test_code_examples_produce_warnings_only(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "context_for_llms/examples.md": """
            # Examples

            ```javascript
            function broken() {
              app.start(3000);
            ```

            ```python
            def ignored(): {
            ```
            """,
        }
    )
    context = _context(repo_builder.path(), PointerMap(), settings=ValidationConfig())

    issues = CodeExampleValidator().validate(context)

    assert [(issue.type, issue.severity) for issue in issues] == [
        ("code_example_error", "warning"),
        ("deprecated_api", "warning"),
    ]
    assert issues[1].message == "Code example may use deprecated API: app.start()"
    assert issues[1].suggestion == "Check if app.listen() should be used instead"


def test_clean_corpus_scores_perfectly_and_reports_unlinked_docs(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/foo.ts": "export {};\n",
            "context_for_llms/a.md": "# A\n\n`src/foo.ts`\n",
            "context_for_llms/b.md": "# B\n\nNo code here.\n",
        }
    )
    pointer_map = PointerMap(mappings={"a.md": {"src/foo.ts": ["mentions src/foo.ts"]}})

    report = AccuracyValidator().run(_context(repo_builder.path(), pointer_map))
    results = report.to_dict(generated=NOW)["validation_results"]

    assert results == {
        "total_checks": 2,
        "passed": 2,
        "failed": 0,
        "errors": 0,
        "warnings": 0,
        "accuracy_score": 1.0,
    }
    assert [(issue.type, issue.doc_file) for issue in report.info] == [
        ("unlinked_document", "context_for_llms/b.md")
    ]


def test_accuracy_is_passed_over_total(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "context_for_llms/a.md": "# A\n\n`src/missing.ts` and `src/other-missing.ts`\n",
            "context_for_llms/b.md": "# B\n",
            "context_for_llms/c.md": "# C\n\n```js\nif (x) {\n```\n",
        }
    )

    report = AccuracyValidator().run(_context(repo_builder.path(), PointerMap()))
    results = report.to_dict(generated=NOW)["validation_results"]

    assert results["total_checks"] == 3
    assert results["passed"] == 2
    assert results["failed"] == 1
    assert results["errors"] == 2
    assert results["warnings"] == 1
    assert results["accuracy_score"] == 0.67
