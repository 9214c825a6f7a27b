"""CLI entrypoints for docsync commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict

from .config import ConfigError
from .logging import configure_logging
from .orchestrator import Orchestrator, StageResult, UnknownDocumentError


def _add_logging_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=argparse.SUPPRESS if suppress_default else None,
        help="Also write timestamped log records to this file.",
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive number of days: {value}")
    return number


def _add_window_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--window-days",
        type=_positive_int,
        default=None,
        help="Trailing history window in days (defaults to the configured window).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsync",
        description="Keep machine-oriented documentation consistent with the source tree.",
    )
    _add_logging_options(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    stage_help = {
        "pointers": "Extract references from documentation and write CODE_POINTERS.json.",
        "changes": "Summarize recent source changes into CODE_CHANGES.json.",
        "state": "Score completeness and staleness into DOC_STATE.json.",
        "coverage": "Report undocumented source files in COVERAGE.json.",
        "validate": "Check documentation accuracy into VALIDATION.json.",
        "run": "Run every stage and write all reports.",
    }
    for command, help_text in stage_help.items():
        sub = subparsers.add_parser(command, help=help_text)
        _add_logging_options(sub, suppress_default=True)
        _add_path_argument(sub)
        if command in {"changes", "state"}:
            _add_window_option(sub)

    mark_parser = subparsers.add_parser(
        "mark-validated",
        help="Record that a document was reviewed against its linked source files.",
    )
    _add_logging_options(mark_parser, suppress_default=True)
    mark_parser.add_argument("document", help="Document name or path inside the docs directory.")
    mark_parser.add_argument(
        "--source",
        action="append",
        dest="sources",
        default=None,
        help="Only mark this linked source file (repeatable).",
    )
    mark_parser.add_argument(
        "--path",
        dest="path",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service.")
    _add_logging_options(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for docsync commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port)
        return

    orchestrator = Orchestrator()
    try:
        if args.command == "mark-validated":
            marked = orchestrator.mark_validated(args.path, args.document, sources=args.sources)
            if marked:
                print(f"Marked {len(marked)} pointer(s) validated for {args.document}:")
                for source in marked:
                    print(f"  {source}")
            else:
                print(f"No matching pointers for {args.document}")
            return
        if args.command == "run":
            results = orchestrator.run_all(args.path)
            for result in results.values():
                _print_result(result)
            return
        result = _run_stage(orchestrator, args)
    except UnknownDocumentError as exc:
        parser.exit(1, f"{exc.args[0] if exc.args else exc}\n")
    except (FileNotFoundError, ConfigError) as exc:
        parser.exit(1, f"{exc}\n")
    except OSError as exc:
        parser.exit(1, f"docsync {args.command} failed: {exc}\nRun with --verbose for more details.\n")
    _print_result(result)


def _run_stage(orchestrator: Orchestrator, args: argparse.Namespace) -> StageResult:
    command = args.command
    if command == "pointers":
        return orchestrator.run_pointers(args.path)
    if command == "changes":
        return orchestrator.run_changes(args.path, window_days=args.window_days)
    if command == "state":
        return orchestrator.run_state(args.path, window_days=args.window_days)
    if command == "coverage":
        return orchestrator.run_coverage(args.path)
    if command == "validate":
        return orchestrator.run_validate(args.path)
    raise ValueError(f"Unknown command: {command}")  # pragma: no cover - argparse enforces choices


def _print_result(result: StageResult) -> None:
    print(f"{result.stage}: {_format_summary(result.summary)}")
    if result.path is not None:
        print(f"  written to {_relativize(result.path)}")


def _format_summary(summary: Dict[str, Any]) -> str:
    return ", ".join(f"{key.replace('_', ' ')} {value}" for key, value in summary.items())


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
