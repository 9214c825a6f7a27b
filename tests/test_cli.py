"""CLI parser behaviour tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from docsync import cli
from docsync.cli import _build_parser
from docsync.orchestrator import Orchestrator
from docsync.repo_scanner import SourceScanner
from tests._fixtures.repo_builder import NOW, RepoBuilder, no_git_runner


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "pointers"])
    assert args.verbose is True
    assert args.command == "pointers"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["validate", "repo", "--verbose"])
    assert args.verbose is True
    assert args.command == "validate"
    assert args.path == "repo"


def test_cli_accepts_window_days() -> None:
    parser = _build_parser()
    args = parser.parse_args(["changes", "--window-days", "14"])
    assert args.window_days == 14
    assert parser.parse_args(["state"]).window_days is None


def test_cli_mark_validated_collects_sources() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        ["mark-validated", "api.md", "--source", "src/a.ts", "--source", "src/b.ts", "--path", "repo"]
    )
    assert args.document == "api.md"
    assert args.sources == ["src/a.ts", "src/b.ts"]
    assert args.path == "repo"


def test_cli_rejects_unknown_command() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["publish"])


@pytest.fixture
def offline_orchestrator(monkeypatch: pytest.MonkeyPatch) -> None:
    def factory() -> Orchestrator:
        return Orchestrator(SourceScanner(runner=no_git_runner), runner=no_git_runner, clock=lambda: NOW)

    monkeypatch.setattr(cli, "Orchestrator", factory)


def test_main_exits_when_docs_directory_is_missing(
    repo_builder: RepoBuilder, offline_orchestrator: None, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_builder.write({"src/a.ts": "export {};\n"})

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["pointers", str(repo_builder.path())])

    assert excinfo.value.code == 1
    assert "Documentation directory not found" in capsys.readouterr().err


def test_main_exits_when_pointer_map_is_missing(
    repo_builder: RepoBuilder, offline_orchestrator: None, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_builder.write({"context_for_llms/a.md": "# A\n"})

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["coverage", str(repo_builder.path())])

    assert excinfo.value.code == 1
    assert "docsync pointers" in capsys.readouterr().err


def test_main_prints_stage_summary(
    repo_builder: RepoBuilder, offline_orchestrator: None, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_builder.write(
        {
            "src/a.ts": "export {};\n",
            "context_for_llms/a.md": "# A\n\nSee `src/a.ts`.\n",
        }
    )

    cli.main(["pointers", str(repo_builder.path())])

    out = capsys.readouterr().out
    assert out.startswith("pointers: documents 1, mapped documents 1, pointers 1")
    assert "CODE_POINTERS.json" in out
    written = json.loads((repo_builder.path() / "context_for_llms" / "CODE_POINTERS.json").read_text())
    assert written["mappings"] == {"a.md": {"src/a.ts": ["mentions src/a.ts"]}}


def test_main_mark_validated_unknown_document_exits(
    repo_builder: RepoBuilder, offline_orchestrator: None, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_builder.write(
        {
            "src/a.ts": "export {};\n",
            "context_for_llms/a.md": "# A\n\nSee `src/a.ts`.\n",
        }
    )
    root = str(repo_builder.path())
    cli.main(["pointers", root])
    capsys.readouterr()

    cli.main(["mark-validated", "a.md", "--path", root])
    assert "Marked 1 pointer(s) validated for a.md" in capsys.readouterr().out

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["mark-validated", "missing.md", "--path", root])
    assert excinfo.value.code == 1
    assert "missing.md" in capsys.readouterr().err


def test_main_exits_for_missing_repository(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["pointers", str(tmp_path / "does-not-exist")])
    assert excinfo.value.code == 1


def test_cli_rejects_non_positive_window() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["changes", "--window-days", "0"])
    with pytest.raises(SystemExit):
        parser.parse_args(["state", "--window-days", "-3"])


def test_main_exits_on_undecodable_config(
    repo_builder: RepoBuilder, offline_orchestrator: None, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_builder.write({"context_for_llms/a.md": "# A\n"})
    (repo_builder.path() / ".docsync.yml").write_bytes(b"docs_dir: \xff\n")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["pointers", str(repo_builder.path())])

    assert excinfo.value.code == 1
    assert "not valid UTF-8" in capsys.readouterr().err


def test_main_writes_log_file(
    repo_builder: RepoBuilder, offline_orchestrator: None, tmp_path: Path
) -> None:
    repo_builder.write(
        {
            "src/a.ts": "export {};\n",
            "context_for_llms/a.md": "# A\n\nSee `src/a.ts`.\n",
        }
    )
    log_file = tmp_path / "logs" / "docsync.log"

    cli.main(["run", str(repo_builder.path()), "--log-file", str(log_file)])

    assert "docsync.orchestrator: Running pointers, changes" in log_file.read_text(encoding="utf-8")
