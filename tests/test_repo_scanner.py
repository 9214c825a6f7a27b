"""Tests for docsync.repo_scanner."""

from __future__ import annotations

from pathlib import Path

import pytest

from docsync.repo_scanner import SourceIndex, SourceScanner, file_stem, has_extension
from tests._fixtures.repo_builder import RepoBuilder, days_ago, no_git_runner


def test_scan_walks_tree_and_filters_extensions(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/app.ts": "export const app = 1;\n",
            "src/util/helpers.py": "def helper():\n    return 1\n",
            "README.md": "# Readme\n",
            "node_modules/lib/index.js": "module.exports = {};\n",
            "dist/bundle.js": "var x;\n",
            "vendor/generated.ts": "export const x = 1;\n",
            ".gitignore": "vendor/\n",
        }
    )
    repo_builder.touch("src/app.ts", days_ago(2))

    files = repo_builder.scan()
    paths = [file.path for file in files]

    assert paths == ["src/app.ts", "src/util/helpers.py"]
    app = files[0]
    assert app.last_modified == days_ago(2)
    assert app.size == len("export const app = 1;\n")


def test_scan_applies_exclude_patterns(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/app.ts": "export {};\n",
            "src/app.generated.ts": "export {};\n",
        }
    )
    scanner = SourceScanner(runner=no_git_runner)

    files = scanner.scan(repo_builder.path(), [".ts"], exclude_paths=["*.generated.ts"])

    assert [file.path for file in files] == ["src/app.ts"]


def test_scan_uses_git_listing_and_skips_deleted_files(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/kept.ts": "export {};\n", "node_modules/x/index.ts": "export {};\n"})
    calls: list[list[str]] = []

    def runner(args, cwd, capture_output=False):  # type: ignore[no-untyped-def]
        calls.append(list(args))
        if args[:2] == ["git", "rev-parse"]:
            return "true\n"
        if args[:2] == ["git", "ls-files"]:
            return "src/kept.ts\nsrc/deleted.ts\nnode_modules/x/index.ts\n"
        return ""

    files = SourceScanner(runner=runner).scan(repo_builder.path(), [".ts"])

    assert [file.path for file in files] == ["src/kept.ts"]
    assert ["git", "ls-files"] in calls


def test_scan_rejects_missing_directory(tmp_path: Path) -> None:
    scanner = SourceScanner(runner=no_git_runner)
    missing = tmp_path / "missing"

    with pytest.raises(FileNotFoundError, match="missing"):
        scanner.scan(missing, [".ts"])


def test_source_index_looks_up_by_stem_and_caches_text(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/foo.ts": "export class Foo {}\n",
            "lib/foo.js": "module.exports = {};\n",
            "src/bar.ts": "export {};\n",
        }
    )
    index = repo_builder.index()

    assert len(index) == 3
    assert "src/foo.ts" in index
    assert sorted(index.with_stem("foo")) == ["lib/foo.js", "src/foo.ts"]
    assert index.text("src/foo.ts") == "export class Foo {}\n"

    (repo_builder.path() / "src" / "foo.ts").write_text("changed", encoding="utf-8")
    assert index.text("src/foo.ts") == "export class Foo {}\n"


def test_source_index_reads_undecodable_files_as_empty(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/ok.ts": "export {};\n"})
    (repo_builder.path() / "src" / "bad.ts").write_bytes(b"\xff\xfe\x00bad")
    index = SourceIndex(repo_builder.path(), repo_builder.scan())

    assert index.text("src/bad.ts") == ""
    assert index.text("src/missing.ts") == ""


def test_path_helpers() -> None:
    assert has_extension("src/App.TSX", [".tsx"])
    assert not has_extension("Makefile", [".ts"])
    assert file_stem("src/utils/format.test.ts") == "format.test"
